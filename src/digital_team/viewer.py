"""The presentation view: one engine, one source document at a time."""

import logging

from .controller import ConversationController
from .playback import ClientAudioPlayer, Event, PlaybackEngine
from .slides import parse_slides
from .store import SessionStore

logger = logging.getLogger(__name__)

NO_CONTENT_TEXT = "No presentation content found. Please return to chat and generate a presentation."


class PresentationViewer:
    """Opens document presentations in the playback engine and regenerates them.

    ``document_in_view`` is the (session id, message id) of the document
    the user is looking at. It survives closing the slideshow, so a
    regenerated deck reopens only if the user has not moved on to
    something else in the meantime.
    """

    def __init__(self, store: SessionStore, controller: ConversationController, engine: PlaybackEngine):
        self.store = store
        self.controller = controller
        self.engine = engine
        self.document_in_view: tuple[str, str] | None = None

    @property
    def source_document_id(self) -> str | None:
        return self.document_in_view[1] if self.document_in_view else None

    def open(self, session_id: str, message_id: str) -> None:
        message = self.store.find_message(session_id, message_id)
        if message is None or not message.is_document:
            raise KeyError(message_id)

        presentation = message.presentation
        if presentation is None:
            slides = []
        else:
            slides = parse_slides(presentation.markup, presentation.audio)
        self.document_in_view = (session_id, message_id)
        self.engine.open(slides)
        logger.info("Opened presentation for %s with %d slides", message_id, len(slides))

    def close(self) -> None:
        self.engine.close()

    def forget(self) -> None:
        """Drop the document in view (the user switched or left the chat)."""
        self.engine.close()
        self.document_in_view = None

    async def generate(self, session_id: str, message_id: str, **options) -> bool:
        """Generate (or regenerate) a deck and open it if still in view.

        Returns True when a new presentation was attached. A request the
        controller rejects leaves the current view untouched.
        """
        self.controller.build_request(session_id, message_id, **options)
        self.engine.close()
        self.document_in_view = (session_id, message_id)
        updated = await self.controller.generate_presentation(session_id, message_id, **options)
        if updated is None:
            return False
        if self.document_in_view == (session_id, message_id):
            self.open(session_id, message_id)
        return True

    async def regenerate(self, **options) -> bool:
        if self.document_in_view is None:
            raise LookupError("No presentation is in view")
        session_id, message_id = self.document_in_view
        return await self.generate(session_id, message_id, **options)

    def handle_event(self, event: str, token: int | None = None) -> None:
        """Apply a control or audio report coming from the page."""
        event = Event(event)
        if event in (Event.OPEN, Event.CLOSE, Event.TIMER_FIRED):
            raise ValueError(f"Event {event.value} cannot be sent by the page")

        player = self.engine.audio_player
        if event in (Event.AUDIO_ENDED, Event.AUDIO_FAILED):
            # Audio reports only ever address a live page cue.
            if isinstance(player, ClientAudioPlayer) and token is not None:
                player.report(token, ended=event is Event.AUDIO_ENDED)
            else:
                logger.debug("Ignoring page audio report %s without a client cue", event.value)
            return
        self.engine.dispatch(event)

    def snapshot(self) -> dict:
        engine = self.engine
        slide = engine.current_slide
        count = engine.count
        data = {
            "open": engine.is_open,
            "status": engine.status.value,
            "index": engine.index,
            "count": count,
            "label": f"Slide {engine.index + 1 if count else 0} of {count}",
            "progress": ((engine.index + 1) / count * 100) if count else 0,
            "html": slide.html if slide else NO_CONTENT_TEXT,
            "source_document_id": self.source_document_id,
            "audio": None,
        }
        player = engine.audio_player
        if engine.audio_active and isinstance(player, ClientAudioPlayer) and player.active_cue:
            cue = player.active_cue
            data["audio"] = {"ref": cue.ref, "token": cue.token}
        return data
