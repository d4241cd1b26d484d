"""Persistent multi-session chat history."""

import json
import logging
from types import MappingProxyType
from typing import Mapping

from .config import ACTIVE_SESSION_KEY, HISTORY_KEY
from .core import (
    Message,
    Presentation,
    Session,
    make_title,
    new_session_id,
    session_from_dict,
    session_to_dict,
)
from .selector import resolve_active, sort_by_recency
from .storage import MemorySlot, StorageSlot

logger = logging.getLogger(__name__)


class SessionStore:
    """Owns the session mapping and the active-session pointer.

    The mapping is written back whole to the durable slot after every
    change; the pointer goes to the volatile slot. Whenever any session
    exists the pointer names a live one, and an empty store immediately
    gets a fresh "New Chat" so there is always somewhere to write.
    """

    def __init__(self, durable: StorageSlot, volatile: StorageSlot | None = None):
        self.durable = durable
        self.volatile = volatile if volatile is not None else MemorySlot()
        self._sessions: dict[str, Session] = self._load()
        self._active_id: str | None = self.volatile.get(ACTIVE_SESSION_KEY)
        self._reconcile()

    # ── Reads ────────────────────────────────────────────────────────

    @property
    def sessions(self) -> Mapping[str, Session]:
        return MappingProxyType(self._sessions)

    @property
    def active_session_id(self) -> str | None:
        return self._active_id

    @property
    def active_session(self) -> Session | None:
        if self._active_id is None:
            return None
        return self._sessions.get(self._active_id)

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def find_message(self, session_id: str, message_id: str) -> Message | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return next((m for m in session.messages if m.id == message_id), None)

    def list_sessions_by_recency(self) -> list[Session]:
        return sort_by_recency(self._sessions.values())

    # ── Mutations ────────────────────────────────────────────────────

    def create_session(self) -> str:
        """Start a new chat and make it active.

        If the most recently touched session is still blank ("New Chat",
        no messages) it is reused instead, so repeated "new chat" clicks
        never pile up empty sessions.
        """
        ordered = self.list_sessions_by_recency()
        if ordered and ordered[0].is_blank:
            self._set_active(ordered[0].id)
            return ordered[0].id

        session = Session(id=new_session_id())
        self._sessions[session.id] = session
        logger.info("Created session %s", session.id)
        self._set_active(session.id)
        self._commit()
        return session.id

    def select_session(self, session_id: str) -> None:
        if session_id not in self._sessions:
            raise KeyError(session_id)
        self._set_active(session_id)

    def delete_session(self, session_id: str) -> bool:
        if self._sessions.pop(session_id, None) is None:
            return False
        logger.info("Deleted session %s", session_id)
        self._commit()
        self._reconcile()
        return True

    def append_message(
        self,
        session_id: str,
        message: Message,
        title_text: str | None = None,
    ) -> bool:
        """Append ``message`` to a session; unknown sessions are a no-op.

        The first user message names the session. ``title_text`` overrides
        the text the title is taken from (an attachment-only turn passes
        an empty string and keeps "New Chat").
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug("Dropping message %s for missing session %s", message.id, session_id)
            return False

        session.messages.append(message)
        if len(session.messages) == 1 and message.sender == "user" and message.kind == "text":
            source = message.text if title_text is None else title_text
            if source:
                session.title = make_title(source)
        self._commit()
        return True

    def attach_presentation(
        self,
        session_id: str,
        message_id: str,
        presentation: Presentation,
    ) -> Message | None:
        """Replace a document message's presentation in place.

        Returns the updated message, or None if the session or document is
        gone.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return None
        for i, msg in enumerate(session.messages):
            if msg.id == message_id:
                if not msg.is_document:
                    return None
                updated = msg.with_presentation(presentation)
                session.messages[i] = updated
                self._commit()
                return updated
        return None

    # ── Private helpers ──────────────────────────────────────────────

    def _load(self) -> dict[str, Session]:
        raw = self.durable.get(HISTORY_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("history is not an object")
            return {sid: session_from_dict(sid, entry) for sid, entry in data.items()}
        except Exception as e:
            logger.warning("Failed to load chat history, starting empty: %s", e)
            return {}

    def _commit(self) -> None:
        if self._sessions:
            payload = {sid: session_to_dict(s) for sid, s in self._sessions.items()}
            self.durable.set(HISTORY_KEY, json.dumps(payload, ensure_ascii=False))
        else:
            self.durable.remove(HISTORY_KEY)

    def _set_active(self, session_id: str) -> None:
        if session_id != self._active_id:
            self._active_id = session_id
            self.volatile.set(ACTIVE_SESSION_KEY, session_id)

    def _reconcile(self) -> None:
        if not self._sessions:
            self.create_session()
            return
        active = resolve_active(self._sessions, self._active_id)
        if active is not None:
            self._set_active(active)
