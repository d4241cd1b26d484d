"""Derive the recency-ordered session list and the active session."""

from typing import Iterable, Mapping

from .core import Session


def sort_by_recency(sessions: Iterable[Session]) -> list[Session]:
    """Newest activity first: last message time, else creation time.

    The sort is stable, so sessions with equal timestamps keep their
    mapping order.
    """
    return sorted(sessions, key=lambda s: s.last_activity, reverse=True)


def resolve_active(sessions: Mapping[str, Session], pointer: str | None) -> str | None:
    """Return a live session id for the active pointer.

    Keeps ``pointer`` when it names a live session, otherwise falls back to
    the most recent session. Returns None only for an empty mapping.
    """
    if pointer and pointer in sessions:
        return pointer
    ordered = sort_by_recency(sessions.values())
    return ordered[0].id if ordered else None
