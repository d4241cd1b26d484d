"""Client for the external processing endpoint.

Text-only turns are posted as JSON ``{"message", "sessionId"}``; turns with
an attachment go out as multipart form data with ``message``, ``sessionId``,
``fileType`` and ``file`` fields.

Recognized JSON replies:
- ``{"data_result": str | object}``: a document to format.
- ``{"message": str}``: a plain text answer.
Anything else is "received but not understood".
"""

import json
import logging
from dataclasses import dataclass

import httpx

from .config import get_timeout, get_webhook_url
from .core import Attachment

logger = logging.getLogger(__name__)


class NotConfiguredError(Exception):
    """The endpoint address is not set."""


class EndpointError(Exception):
    """The endpoint could not be reached or answered with something unusable.

    ``status`` is the HTTP status for non-2xx replies and None for transport
    failures. ``unexpected`` marks a 2xx reply that was not JSON.
    """

    def __init__(self, message: str, status: int | None = None, unexpected: bool = False):
        super().__init__(message)
        self.status = status
        self.unexpected = unexpected


@dataclass(frozen=True)
class EndpointReply:
    kind: str  # "document" | "text" | "unknown"
    content: str = ""


class EndpointClient:
    """Posts user turns to the processing endpoint."""

    def __init__(
        self,
        url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self._url = url
        self._transport = transport
        self._timeout = timeout

    @property
    def url(self) -> str | None:
        return self._url if self._url is not None else get_webhook_url()

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def dispatch(
        self,
        text: str,
        session_id: str,
        attachment: Attachment | None = None,
    ) -> EndpointReply:
        url = self.url
        if not url:
            raise NotConfiguredError("Processing endpoint URL is not set")

        timeout = self._timeout if self._timeout is not None else get_timeout()
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
                if attachment is not None:
                    response = await client.post(
                        url,
                        data={
                            "message": text or "",
                            "sessionId": session_id,
                            "fileType": attachment.extension,
                        },
                        files={
                            "file": (attachment.filename, attachment.content, attachment.content_type),
                        },
                    )
                else:
                    response = await client.post(url, json={"message": text, "sessionId": session_id})
        except httpx.HTTPError as e:
            logger.error("Network error calling endpoint: %s", e)
            raise EndpointError(str(e)) from e

        if not response.is_success:
            logger.error(
                "Error from endpoint: %s %s %s",
                response.status_code,
                response.reason_phrase,
                response.text[:500],
            )
            raise EndpointError(f"HTTP {response.status_code}", status=response.status_code)

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            logger.error("Endpoint returned non-JSON response: %s %s", response.status_code, response.text[:500])
            raise EndpointError("Non-JSON response", status=response.status_code, unexpected=True)

        try:
            data = response.json()
        except ValueError as e:
            logger.error("Endpoint returned malformed JSON: %s", e)
            raise EndpointError("Malformed JSON", status=response.status_code, unexpected=True) from e

        return classify_reply(data)


def classify_reply(data) -> EndpointReply:
    """Map a decoded endpoint reply onto document, text or unknown."""
    if not isinstance(data, dict):
        return EndpointReply(kind="unknown")

    result = data.get("data_result")
    if result:
        if isinstance(result, (dict, list)):
            content = json.dumps(result, indent=2, ensure_ascii=False)
        else:
            content = str(result)
        return EndpointReply(kind="document", content=content)

    message = data.get("message")
    if message:
        return EndpointReply(kind="text", content=str(message))

    return EndpointReply(kind="unknown")
