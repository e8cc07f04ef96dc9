"""Chat JSON loading and export."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from .models import Chat, ChatTitle, GeoPosition, Media, Message, SenderContact

logger = logging.getLogger("chatscribe")


class ChatLoadError(RuntimeError):
    pass


def _section(data: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ChatLoadError(f"Expected an object for '{key}', got {type(value).__name__}.")
    return value


def _optional_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


def _media_from_dict(data: Dict[str, Any]) -> Media:
    return Media(
        file_path=data.get("file_path"),
        mime_type=data.get("mime_type"),
        media_job_uuid=data.get("media_job_uuid"),
        message_id=data.get("message_id"),
        file_size_byte=data.get("file_size_byte"),
        audio_length_seconds=data.get("audio_length_seconds"),
        transcription=data.get("transcription"),
    )


def _geo_from_dict(data: Dict[str, Any]) -> GeoPosition:
    return GeoPosition(
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
        message_id=data.get("message_id"),
    )


def _contact_from_dict(data: Dict[str, Any]) -> SenderContact:
    return SenderContact(
        name=data.get("name"),
        number=data.get("number"),
        raw_string_jid=data.get("raw_string_jid"),
    )


def _title_from_dict(data: Dict[str, Any]) -> ChatTitle:
    return ChatTitle(
        name=data.get("name"),
        number=data.get("number"),
        raw_string_jid=data.get("raw_string_jid"),
    )


def message_from_dict(data: Dict[str, Any]) -> Message:
    geo = _section(data, "geo_position")
    media = _section(data, "media")
    contact = _section(data, "sender_contact")
    return Message(
        message_id=data.get("message_id"),
        chat_id=data.get("chat_id"),
        from_me=_optional_bool(data.get("from_me")),
        key_id=data.get("key_id"),
        timestamp=data.get("timestamp"),
        text_data=data.get("text_data"),
        reply_to=data.get("reply_to"),
        geo_position=_geo_from_dict(geo) if geo is not None else None,
        media=_media_from_dict(media) if media is not None else None,
        sender_contact=_contact_from_dict(contact) if contact is not None else None,
    )


def chat_from_dict(data: Any) -> Chat:
    if not isinstance(data, dict):
        raise ChatLoadError("Chat file must contain a JSON object.")

    raw_messages = data.get("messages") or []
    if not isinstance(raw_messages, list):
        raise ChatLoadError("'messages' must be a list.")

    messages = []
    for index, item in enumerate(raw_messages):
        if item is None:
            logger.warning("Skipping empty message entry at index %s", index)
            continue
        if not isinstance(item, dict):
            raise ChatLoadError(f"Message at index {index} is not an object.")
        messages.append(message_from_dict(item))

    title = _section(data, "chat_title")
    chat_title = _title_from_dict(title) if title is not None else None

    return Chat(chat_id=data.get("chat_id"), chat_title=chat_title, messages=messages)


def load_chat(path: str) -> Chat:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise ChatLoadError(f"Unable to read chat file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ChatLoadError(f"Chat file {path} is not valid JSON: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ChatLoadError(f"Chat file {path} is not valid UTF-8: {exc}") from exc
    return chat_from_dict(data)


def save_chat(path: str, chat: Chat) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(asdict(chat), handle, indent=2, ensure_ascii=False)
