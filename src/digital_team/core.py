"""Core data models for digital-team."""

import itertools
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from .config import NEW_CHAT_TITLE, TITLE_MAX_CHARS

_message_seq = itertools.count()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    return str(uuid4())


def new_message_id() -> str:
    """Return a message id that sorts by creation order within a process."""
    return f"{time.time_ns():020d}-{next(_message_seq):06d}"


def make_title(text: str) -> str:
    """Session title from the first user message: 25 chars, then an ellipsis."""
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + "…"
    return text


@dataclass(frozen=True)
class Presentation:
    """Generated slide markup plus narration references, one per slide block."""

    markup: str
    audio: list[Optional[str]] = field(default_factory=list)


@dataclass(frozen=True)
class Message:
    """A single turn within a session.

    Messages are immutable; a document message gains a presentation through
    ``with_presentation``, which returns a copy with the same id.
    """

    id: str
    sender: str  # "user" | "bot"
    text: str
    timestamp: datetime
    kind: str = "text"  # "text" | "document"
    title: Optional[str] = None  # document only
    raw: Optional[str] = None  # document only: pre-formatting payload
    presentation: Optional[Presentation] = None

    @property
    def is_document(self) -> bool:
        return self.kind == "document"

    def with_presentation(self, presentation: Presentation) -> "Message":
        if not self.is_document:
            raise ValueError(f"Message {self.id} is not a document")
        return Message(
            id=self.id,
            sender=self.sender,
            text=self.text,
            timestamp=self.timestamp,
            kind=self.kind,
            title=self.title,
            raw=self.raw,
            presentation=presentation,
        )


def user_message(text: str) -> Message:
    return Message(id=new_message_id(), sender="user", text=text, timestamp=utcnow())


def bot_message(text: str) -> Message:
    return Message(id=new_message_id(), sender="bot", text=text, timestamp=utcnow())


def document_message(title: str, html: str, raw: str) -> Message:
    return Message(
        id=new_message_id(),
        sender="bot",
        text=html,
        timestamp=utcnow(),
        kind="document",
        title=title,
        raw=raw,
    )


@dataclass
class Session:
    """A single chat conversation."""

    id: str
    title: str = NEW_CHAT_TITLE
    messages: list[Message] = field(default_factory=list)
    created: datetime = field(default_factory=utcnow)

    @property
    def is_blank(self) -> bool:
        """An untitled session nobody has written to yet."""
        return not self.messages and self.title == NEW_CHAT_TITLE

    @property
    def last_activity(self) -> datetime:
        if self.messages:
            return self.messages[-1].timestamp
        return self.created


@dataclass(frozen=True)
class Slide:
    """One renderable slide block with its optional narration reference."""

    index: int
    html: str
    audio: Optional[str] = None


@dataclass(frozen=True)
class Attachment:
    """A file submitted alongside a user turn."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1].lower()


# ── Serialization ────────────────────────────────────────────────


def message_to_dict(msg: Message) -> dict:
    data = {
        "id": msg.id,
        "sender": msg.sender,
        "text": msg.text,
        "timestamp": msg.timestamp.isoformat(),
        "type": msg.kind,
    }
    if msg.is_document:
        data["title"] = msg.title
        data["rawData"] = msg.raw
        if msg.presentation is not None:
            data["presentation"] = {
                "html": msg.presentation.markup,
                "audio": list(msg.presentation.audio),
            }
    return data


def message_from_dict(data: dict) -> Message:
    presentation = None
    raw_presentation = data.get("presentation")
    if isinstance(raw_presentation, dict) and raw_presentation.get("html"):
        presentation = Presentation(
            markup=str(raw_presentation["html"]),
            audio=list(raw_presentation.get("audio") or []),
        )
    return Message(
        id=str(data["id"]),
        sender=data.get("sender", "bot"),
        text=str(data.get("text", "")),
        timestamp=parse_iso(data.get("timestamp")) or utcnow(),
        kind=data.get("type", "text"),
        title=data.get("title"),
        raw=data.get("rawData"),
        presentation=presentation,
    )


def session_to_dict(session: Session) -> dict:
    return {
        "title": session.title,
        "messages": [message_to_dict(m) for m in session.messages],
        "createdAt": session.created.isoformat(),
    }


def session_from_dict(session_id: str, data: dict) -> Session:
    return Session(
        id=session_id,
        title=data.get("title") or NEW_CHAT_TITLE,
        messages=[message_from_dict(m) for m in data.get("messages", [])],
        created=parse_iso(data.get("createdAt")) or datetime(1970, 1, 1, tzinfo=timezone.utc),
    )


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 datetime string."""
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
