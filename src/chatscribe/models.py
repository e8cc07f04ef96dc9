"""Data models for chatscribe."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

MIME_TYPE_OPUS = "audio/ogg; codecs=opus"


def normalize_mime(mime_type: Optional[str]) -> Optional[str]:
    if mime_type is None:
        return None
    parts = [part.strip() for part in mime_type.lower().split(";")]
    return "; ".join(part for part in parts if part)


@dataclass
class GeoPosition:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    message_id: Optional[int] = None


@dataclass
class SenderContact:
    name: Optional[str] = None
    number: Optional[str] = None
    raw_string_jid: Optional[str] = None


@dataclass
class Media:
    file_path: Optional[str] = None
    mime_type: Optional[str] = None
    media_job_uuid: Optional[str] = None
    message_id: Optional[int] = None
    # Enrichment fields, None until a probe or transcript read succeeds.
    file_size_byte: Optional[int] = None
    audio_length_seconds: Optional[float] = None
    transcription: Optional[str] = None

    @property
    def is_audio(self) -> bool:
        mime = normalize_mime(self.mime_type)
        return bool(mime) and mime.startswith("audio/")

    @property
    def is_opus(self) -> bool:
        return normalize_mime(self.mime_type) == MIME_TYPE_OPUS


@dataclass
class Message:
    message_id: Optional[int] = None
    chat_id: Optional[int] = None
    from_me: Optional[bool] = None
    key_id: Optional[str] = None
    timestamp: Optional[int] = None
    text_data: Optional[str] = None
    reply_to: Optional[str] = None
    geo_position: Optional[GeoPosition] = None
    media: Optional[Media] = None
    sender_contact: Optional[SenderContact] = None

    @property
    def media_path(self) -> Optional[str]:
        if self.media is None:
            return None
        return self.media.file_path


@dataclass
class ChatTitle:
    name: Optional[str] = None
    number: Optional[str] = None
    raw_string_jid: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.name or self.number or self.raw_string_jid


@dataclass
class Chat:
    chat_id: Optional[int] = None
    chat_title: Optional[ChatTitle] = None
    messages: List[Message] = field(default_factory=list)

    @property
    def title(self) -> str:
        if self.chat_title and self.chat_title.display_name:
            return self.chat_title.display_name
        return f"Chat {self.chat_id}" if self.chat_id is not None else "Chat"
