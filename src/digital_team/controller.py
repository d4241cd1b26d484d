"""Conversation flow: user turns out to the endpoint, bot turns back in."""

import logging

from .core import (
    Attachment,
    Message,
    bot_message,
    document_message,
    user_message,
)
from .endpoint import EndpointClient, EndpointError, NotConfiguredError
from .generation import (
    DocumentFormatter,
    GenerationError,
    PresentationGenerator,
    SlideContentGenerator,
    SlideContentRequest,
    TemplatePresentationGenerator,
)
from .store import SessionStore

logger = logging.getLogger(__name__)

NOT_CONFIGURED_TEXT = "I'm sorry, the webhook URL is not configured. Please contact support."
NOT_UNDERSTOOD_TEXT = "I received a response, but couldn't understand it."
UNEXPECTED_RESPONSE_TEXT = "I'm sorry, I received an unexpected response from the server. Please try again."
STATUS_ERROR_TEXT = (
    "I'm sorry, I encountered an error (Status: {status}). Please try sending your message again. "
    "If the issue continues, please start a new chat."
)
NETWORK_ERROR_TEXT = (
    "An unexpected network error occurred. Please try sending your message again. "
    "If the issue continues, please start a new chat."
)
GENERATION_ERROR_TEXT = "An error occurred while generating the presentation: {detail}."


def attachment_echo(text: str, attachment: Attachment | None) -> str:
    """The user turn as shown in the transcript, naming any attached file."""
    if attachment is None:
        return text
    note = f"📎 File attached: {attachment.filename}"
    return f"{text}\n\n{note}" if text else note


class ConversationController:
    """Sends user turns and files the replies into the store.

    Every call captures the target session id before its first await and
    writes back to that id only, so switching sessions mid-flight never
    misfiles a reply. Concurrent sends are not serialized: replies land in
    the order they complete.
    """

    def __init__(
        self,
        store: SessionStore,
        endpoint: EndpointClient,
        formatter: DocumentFormatter,
        content_generator: SlideContentGenerator,
        presentation_generator: PresentationGenerator | None = None,
    ):
        self.store = store
        self.endpoint = endpoint
        self.formatter = formatter
        self.content_generator = content_generator
        self.presentation_generator = presentation_generator or TemplatePresentationGenerator()
        self.pending = 0
        self.generating = 0

    @property
    def busy(self) -> bool:
        return self.pending > 0

    def _target_session(self) -> str:
        return self.store.active_session_id or self.store.create_session()

    async def send_message(self, text: str, attachment: Attachment | None = None) -> Message:
        """Post a user turn and append the bot's reply; returns the reply.

        Failures of any kind come back as an apologetic bot message rather
        than an exception.
        """
        text = (text or "").strip()
        if not text and attachment is None:
            raise ValueError("Nothing to send")

        session_id = self._target_session()

        if not self.endpoint.is_configured:
            logger.error("Processing endpoint URL is not configured")
            reply = bot_message(NOT_CONFIGURED_TEXT)
            self.store.append_message(session_id, reply)
            return reply

        self.store.append_message(session_id, user_message(attachment_echo(text, attachment)), title_text=text)

        self.pending += 1
        try:
            reply = await self._exchange(text, session_id, attachment)
        finally:
            self.pending -= 1

        self.store.append_message(session_id, reply)
        return reply

    async def _exchange(self, text: str, session_id: str, attachment: Attachment | None) -> Message:
        try:
            reply = await self.endpoint.dispatch(text, session_id, attachment)
            if reply.kind == "document":
                doc = await self.formatter.format_document(reply.content)
                return document_message(doc.title, doc.html, reply.content)
            if reply.kind == "text":
                return bot_message(reply.content)
            logger.warning("Unrecognized endpoint reply for session %s", session_id)
            return bot_message(NOT_UNDERSTOOD_TEXT)
        except NotConfiguredError:
            return bot_message(NOT_CONFIGURED_TEXT)
        except EndpointError as e:
            if e.unexpected:
                return bot_message(UNEXPECTED_RESPONSE_TEXT)
            if e.status is not None:
                return bot_message(STATUS_ERROR_TEXT.format(status=e.status))
            return bot_message(NETWORK_ERROR_TEXT)
        except GenerationError as e:
            logger.error("Formatting the document failed: %s", e)
            return bot_message(NETWORK_ERROR_TEXT)
        except Exception:
            logger.exception("Unexpected failure handling a message for session %s", session_id)
            return bot_message(NETWORK_ERROR_TEXT)

    def build_request(
        self,
        session_id: str,
        document_id: str,
        featured_service: str,
        announcement_title: str = "",
        announcement_content: str = "",
        announcement_closing: str = "",
        visuals: str = "",
    ) -> SlideContentRequest:
        """Validate a generation request for a document message.

        Raises KeyError for an unknown document and ValueError for a blank
        featured service. Announcement text is kept exactly as typed.
        """
        document = self.store.find_message(session_id, document_id)
        if document is None or not document.is_document:
            raise KeyError(document_id)

        return SlideContentRequest(
            source_text=document.raw or document.text,
            featured_service=featured_service.strip(),
            announcement_title=announcement_title,
            announcement_content=announcement_content,
            announcement_closing=announcement_closing,
            visuals=visuals,
        )

    async def generate_presentation(
        self,
        session_id: str,
        document_id: str,
        featured_service: str,
        announcement_title: str = "",
        announcement_content: str = "",
        announcement_closing: str = "",
        visuals: str = "",
    ) -> Message | None:
        """Generate a deck for a document message and attach it in place.

        Returns the updated document message, or None when generation
        failed (a bot message then explains why) or the document vanished
        while generating. Invalid requests raise as in ``build_request``.
        """
        request = self.build_request(
            session_id,
            document_id,
            featured_service,
            announcement_title=announcement_title,
            announcement_content=announcement_content,
            announcement_closing=announcement_closing,
            visuals=visuals,
        )

        self.generating += 1
        try:
            content = await self.content_generator.create_slide_content(request)
            content = content.apply_request(request)
            presentation = await self.presentation_generator.generate_presentation(content, request.visuals)
            if not presentation.markup.strip():
                raise GenerationError("the presentation came back empty")
        except GenerationError as e:
            logger.error("Error generating presentation for %s: %s", document_id, e)
            self.store.append_message(session_id, bot_message(GENERATION_ERROR_TEXT.format(detail=e)))
            return None
        except Exception as e:
            logger.exception("Unexpected failure generating presentation for %s", document_id)
            self.store.append_message(
                session_id,
                bot_message(GENERATION_ERROR_TEXT.format(detail=str(e) or "Unknown error")),
            )
            return None
        finally:
            self.generating -= 1

        return self.store.attach_presentation(session_id, document_id, presentation)
