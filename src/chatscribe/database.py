"""SQLite persistence for enriched chats.

Every message becomes one flat row in the ``chat`` table. All columns are
nullable so that an unknown value is stored as NULL rather than 0 or "".
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Callable, Optional, Tuple

from .models import Chat, Message

logger = logging.getLogger("chatscribe")

CHAT_COLUMNS = (
    "id",
    "from_me",
    "latitude",
    "longitude",
    "key_id",
    "media_filepath",
    "media_job_uuid",
    "media_mime_type",
    "media_transcription",
    "media_audio_length_seconds",
    "media_file_size_byte",
    "chat_id",
    "reply_to",
    "sender_contact_name",
    "sender_contact_number",
    "sender_contact_raw_string_jid",
    "text_data",
    "timestamp",
)


class SinkError(RuntimeError):
    pass


def message_row(message: Message) -> Tuple:
    latitude = None
    longitude = None
    geo = message.geo_position
    # Coordinates are only meaningful as a pair.
    if geo is not None and geo.latitude is not None and geo.longitude is not None:
        latitude = geo.latitude
        longitude = geo.longitude

    media = message.media
    contact = message.sender_contact
    return (
        message.message_id,
        int(message.from_me) if message.from_me is not None else None,
        latitude,
        longitude,
        message.key_id,
        media.file_path if media else None,
        media.media_job_uuid if media else None,
        media.mime_type if media else None,
        media.transcription if media else None,
        media.audio_length_seconds if media else None,
        media.file_size_byte if media else None,
        message.chat_id,
        message.reply_to,
        contact.name if contact else None,
        contact.number if contact else None,
        contact.raw_string_jid if contact else None,
        message.text_data,
        message.timestamp,
    )


class SQLiteSink:
    """Writes a chat to a SQLite database, replacing any previous import."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise SinkError(f"Unable to open database {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Drop and recreate the tables.

        Tables:
        - chat: one row per message, keyed by message id
        - chat_info: id and title of the imported chat
        """
        conn = self._connect()
        try:
            with conn:
                conn.execute("DROP TABLE IF EXISTS chat")
                conn.execute("DROP TABLE IF EXISTS chat_info")
                conn.execute(
                    """
                    CREATE TABLE chat (
                        id INTEGER PRIMARY KEY,
                        from_me TINYINT(1),
                        latitude REAL,
                        longitude REAL,
                        key_id VARCHAR(255),
                        media_filepath VARCHAR(255),
                        media_job_uuid VARCHAR(255),
                        media_mime_type VARCHAR(255),
                        media_transcription TEXT,
                        media_audio_length_seconds REAL,
                        media_file_size_byte INTEGER,
                        chat_id INTEGER,
                        reply_to VARCHAR(255),
                        sender_contact_name VARCHAR(255),
                        sender_contact_number VARCHAR(255),
                        sender_contact_raw_string_jid VARCHAR(255),
                        text_data TEXT,
                        timestamp INTEGER
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE chat_info (
                        chat_id INTEGER,
                        title_name VARCHAR(255),
                        title_number VARCHAR(255),
                        title_raw_string_jid VARCHAR(255)
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise SinkError(f"Error while creating database schema in {self._db_path}: {exc}") from exc
        finally:
            conn.close()

    def write_chat(
        self,
        chat: Chat,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """Insert every message of the chat and return the number of rows written."""
        placeholders = ", ".join("?" for _ in CHAT_COLUMNS)
        insert = f"INSERT INTO chat ({', '.join(CHAT_COLUMNS)}) VALUES ({placeholders})"
        total = len(chat.messages)
        inserted = 0

        conn = self._connect()
        try:
            title = chat.chat_title
            with conn:
                conn.execute(
                    "INSERT INTO chat_info VALUES (?, ?, ?, ?)",
                    (
                        chat.chat_id,
                        title.name if title else None,
                        title.number if title else None,
                        title.raw_string_jid if title else None,
                    ),
                )
            for index, message in enumerate(chat.messages, start=1):
                try:
                    with conn:
                        conn.execute(insert, message_row(message))
                    inserted += 1
                except sqlite3.Error as exc:
                    logger.error(
                        "Error while inserting message %s into db: %s",
                        message.message_id,
                        exc,
                    )
                if progress:
                    progress(index, total)
        except sqlite3.Error as exc:
            raise SinkError(f"Error while writing to database {self._db_path}: {exc}") from exc
        finally:
            conn.close()
        return inserted

    def fetch_message(self, message_id: int) -> Optional[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute("SELECT * FROM chat WHERE id = ?", (message_id,)).fetchone()
        finally:
            conn.close()
