"""Text-generation collaborators: document formatting, slide content, slide markup.

The generation service is reached over HTTP. Each collaborator has an
abstract interface so the controller can be wired to the remote service,
to the local deck renderer, or to a test double.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields

import httpx
from bs4 import BeautifulSoup

from .config import get_generation_url, get_timeout
from .core import Presentation
from .markup import render_presentation

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """A generation call failed or returned nothing usable."""


@dataclass(frozen=True)
class FormattedDocument:
    title: str
    html: str


@dataclass(frozen=True)
class SlideContentRequest:
    """Options collected before generating a deck from a document."""

    source_text: str
    featured_service: str
    announcement_title: str = ""
    announcement_content: str = ""
    announcement_closing: str = ""
    visuals: str = ""

    def __post_init__(self):
        if not self.featured_service.strip():
            raise ValueError("A featured service is required")

    @property
    def has_announcement(self) -> bool:
        return bool(self.announcement_title.strip())


@dataclass
class SlideContent:
    """Structured text for every generated slide of the deck."""

    title: str = ""
    subtitle: str = ""
    presenter: str = ""
    tip_title: str = ""
    tip_intro: str = ""
    tip_para1: str = ""
    tip_para2: str = ""
    tip_action_items: list[str] = field(default_factory=list)
    tip_takeaway: str = ""
    tip_continuation_title: str = ""
    tip_continuation_para1: str = ""
    tip_continuation_para2: str = ""
    tip_continuation_para3: str = ""
    tip_implementation_steps: list[str] = field(default_factory=list)
    tip_next_action: str = ""
    objection: str = ""
    rebuttal: str = ""
    rebuttal_why1: str = ""
    rebuttal_why2: str = ""
    rebuttal_why3: str = ""
    rebuttal_why4: str = ""
    featured_service_title: str = ""
    featured_service_name: str = ""
    faq_question: str = ""
    faq_answer: str = ""
    announcement_header: str = ""
    announcement_title: str = ""
    announcement_content: str = ""
    announcement_closing: str = ""
    quote: str = ""
    author: str = ""

    @classmethod
    def from_wire(cls, data: dict) -> "SlideContent":
        """Build from the camelCase record the generation service returns."""
        values = {}
        for f in fields(cls):
            value = data.get(_camel(f.name), data.get(f.name))
            if value is None:
                continue
            if f.name in ("tip_action_items", "tip_implementation_steps"):
                values[f.name] = [str(v) for v in value] if isinstance(value, list) else [str(value)]
            else:
                values[f.name] = str(value)
        return cls(**values)

    def to_wire(self) -> dict:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))

    def apply_request(self, request: SlideContentRequest) -> "SlideContent":
        """Pin the user-supplied fields to exactly what the user typed.

        Without an announcement title every announcement field is blanked,
        whatever the generator came up with.
        """
        self.featured_service_name = request.featured_service
        if request.has_announcement:
            self.announcement_title = request.announcement_title
            self.announcement_content = request.announcement_content
            self.announcement_closing = request.announcement_closing
            if not self.announcement_header:
                self.announcement_header = "Announcement"
        else:
            self.announcement_header = ""
            self.announcement_title = ""
            self.announcement_content = ""
            self.announcement_closing = ""
        return self


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def sanitize_html(html: str) -> str:
    """Strip styling and scripting from formatter output, keeping structure."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    for tag in soup.find_all(["html", "head", "body"]):
        tag.unwrap()
    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            if attr in ("class", "style") or attr.lower().startswith("on"):
                del tag.attrs[attr]
    return str(soup).strip()


# ── Collaborator interfaces ──────────────────────────────────────


class DocumentFormatter(ABC):
    @abstractmethod
    async def format_document(self, text: str) -> FormattedDocument:
        """Turn raw text into a title and semantic HTML without styling."""
        ...


class SlideContentGenerator(ABC):
    @abstractmethod
    async def create_slide_content(self, request: SlideContentRequest) -> SlideContent:
        ...


class PresentationGenerator(ABC):
    @abstractmethod
    async def generate_presentation(self, content: SlideContent, visuals: str = "") -> Presentation:
        """Turn structured slide content into slide markup and narration refs."""
        ...


class TemplatePresentationGenerator(PresentationGenerator):
    """Renders the fixed deck locally; produces no narration."""

    async def generate_presentation(self, content: SlideContent, visuals: str = "") -> Presentation:
        if visuals:
            logger.debug("Local deck renderer ignores visual preferences: %r", visuals)
        return Presentation(markup=render_presentation(content), audio=[])


class GenerationClient(DocumentFormatter, SlideContentGenerator, PresentationGenerator):
    """HTTP client for the text-generation service.

    Endpoints (relative to the base URL):
    - ``POST /format`` ``{"text"}`` -> ``{"title", "html"}``
    - ``POST /slide-content`` request fields -> slide content record
    - ``POST /presentation`` ``{"slideContent", "visuals"}`` -> ``{"presentation", "audio"}``
    """

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self._base_url = base_url
        self._transport = transport
        self._timeout = timeout

    async def _post(self, path: str, payload: dict) -> dict:
        base = self._base_url or get_generation_url()
        if not base:
            raise GenerationError("The generation service URL is not configured")

        timeout = self._timeout if self._timeout is not None else get_timeout()
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
                response = await client.post(f"{base.rstrip('/')}{path}", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Generation service %s returned %s: %s", path, e.response.status_code, e.response.text[:500])
            raise GenerationError(f"the generation service returned status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Generation service %s unreachable: %s", path, e)
            raise GenerationError("the generation service could not be reached") from e
        except ValueError as e:
            logger.error("Generation service %s returned malformed JSON: %s", path, e)
            raise GenerationError("the generation service returned malformed output") from e

        if not isinstance(data, dict):
            raise GenerationError("the generation service returned malformed output")
        return data

    async def format_document(self, text: str) -> FormattedDocument:
        data = await self._post("/format", {"text": text})
        html = data.get("html")
        if not html or not isinstance(html, str):
            raise GenerationError("the document could not be formatted")
        title = str(data.get("title") or "").strip() or "Document"
        return FormattedDocument(title=title, html=sanitize_html(html))

    async def create_slide_content(self, request: SlideContentRequest) -> SlideContent:
        payload = {
            "sourceText": request.source_text,
            "featuredService": request.featured_service,
        }
        if request.has_announcement:
            payload["announcementTitle"] = request.announcement_title
            payload["announcementContent"] = request.announcement_content
            payload["announcementClosing"] = request.announcement_closing

        data = await self._post("/slide-content", payload)
        content = SlideContent.from_wire(data)
        if content.is_empty():
            raise GenerationError("AI failed to generate slide content. The output was empty.")
        return content.apply_request(request)

    async def generate_presentation(self, content: SlideContent, visuals: str = "") -> Presentation:
        payload = {"slideContent": content.to_wire()}
        if visuals:
            payload["visuals"] = visuals

        data = await self._post("/presentation", payload)
        markup = data.get("presentation")
        if not markup or not isinstance(markup, str):
            raise GenerationError(str(data.get("result") or "the presentation came back empty"))
        audio = data.get("audio") or []
        if not isinstance(audio, list):
            audio = []
        return Presentation(markup=markup, audio=[str(a) if a else None for a in audio])
