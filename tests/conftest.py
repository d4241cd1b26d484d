"""Shared test fixtures for digital-team."""

import httpx
import pytest

from digital_team.controller import ConversationController
from digital_team.core import Presentation, document_message, user_message
from digital_team.endpoint import EndpointClient
from digital_team.generation import (
    DocumentFormatter,
    FormattedDocument,
    SlideContent,
    SlideContentGenerator,
)
from digital_team.playback import AudioHandle, AudioPlayer, PlaybackEngine, Scheduler, TimerHandle
from digital_team.storage import MemorySlot
from digital_team.store import SessionStore

ENDPOINT_URL = "http://endpoint.test/webhook"


# ── Playback doubles ─────────────────────────────────────────────


class FakeTimer(TimerHandle):
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler(Scheduler):
    """Collects timers; tests fire them by hand."""

    def __init__(self):
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire(self):
        pending = self.pending
        assert len(pending) == 1, f"expected one pending timer, found {len(pending)}"
        timer = pending[0]
        timer.fired = True
        timer.callback()


class FakeAudioHandle(AudioHandle):
    def __init__(self, ref, on_ended, on_failed):
        self.ref = ref
        self.on_ended = on_ended
        self.on_failed = on_failed
        self.stopped = False

    def stop(self):
        self.stopped = True

    def end(self):
        self.on_ended()

    def fail(self):
        self.on_failed()


class FakeAudioPlayer(AudioPlayer):
    """Records every audio resource; refs listed in ``broken`` refuse to start."""

    def __init__(self, broken=()):
        self.broken = set(broken)
        self.handles = []

    def play(self, ref, on_ended, on_failed):
        if ref in self.broken:
            raise RuntimeError(f"cannot play {ref}")
        handle = FakeAudioHandle(ref, on_ended, on_failed)
        self.handles.append(handle)
        return handle

    @property
    def active(self):
        return [h for h in self.handles if not h.stopped]


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def audio_player():
    return FakeAudioPlayer(broken={"broken.mp3"})


@pytest.fixture
def engine(scheduler, audio_player):
    return PlaybackEngine(scheduler, audio_player)


# ── Store ────────────────────────────────────────────────────────


@pytest.fixture
def store():
    """An in-memory store; starts with one blank active session."""
    return SessionStore(MemorySlot(), MemorySlot())


# ── Collaborator doubles ─────────────────────────────────────────


class FakeFormatter(DocumentFormatter):
    def __init__(self, title="Report", html="<h1>Report</h1>"):
        self.title = title
        self.html = html
        self.calls = []

    async def format_document(self, text):
        self.calls.append(text)
        return FormattedDocument(title=self.title, html=self.html)


class FakeContentGenerator(SlideContentGenerator):
    """Returns a copy of ``content``, or raises ``error``."""

    def __init__(self, content, error=None):
        self.content = content
        self.error = error
        self.requests = []

    async def create_slide_content(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return SlideContent(**vars(self.content))


@pytest.fixture
def slide_content():
    return SlideContent(
        title="Bringing AI Into Everyday Work",
        subtitle="Practical steps for teams",
        presenter="Professional Development Session • Today",
        tip_title="Start Small",
        tip_intro="Pick one workflow",
        tip_para1="Choose a repetitive task.",
        tip_para2="Measure the time it takes today.",
        tip_action_items=["List tasks", "Pick one", "Try a tool", "Share results"],
        tip_takeaway="Small wins build trust.",
        tip_continuation_title="Scaling Up",
        tip_continuation_para1="Document what worked.",
        tip_continuation_para2="Train a champion.",
        tip_continuation_para3="Review monthly.",
        tip_implementation_steps=["Audit", "Pilot", "Review", "Expand", "Standardize"],
        tip_next_action="Book a pilot review.",
        objection="It's too expensive.",
        rebuttal="It pays for itself within a quarter.",
        rebuttal_why1="Reframes cost as investment.",
        rebuttal_why2="Uses a concrete timeframe.",
        rebuttal_why3="Invites a follow-up question.",
        rebuttal_why4="Keeps the tone confident.",
        featured_service_title="FEATURED SERVICE TONIGHT",
        featured_service_name="",
        faq_question="How long does setup take?",
        faq_answer="Most teams are running within a week.",
        quote="The best way to predict the future is to create it.",
        author="Peter Drucker",
    )


@pytest.fixture
def formatter():
    return FakeFormatter()


@pytest.fixture
def content_generator(slide_content):
    return FakeContentGenerator(slide_content)


@pytest.fixture
def make_endpoint():
    """Build an EndpointClient whose requests go to ``handler``."""

    def factory(handler, url=ENDPOINT_URL):
        return EndpointClient(url=url, transport=httpx.MockTransport(handler), timeout=5)

    return factory


def _ok_handler(request):
    return httpx.Response(200, json={"message": "ok"})


@pytest.fixture
def make_controller(store, formatter, content_generator, make_endpoint):
    def factory(handler=None, url=ENDPOINT_URL):
        if handler is None:
            handler = _ok_handler
        return ConversationController(
            store,
            make_endpoint(handler, url=url),
            formatter=formatter,
            content_generator=content_generator,
        )

    return factory


@pytest.fixture
def document_in_store(store):
    """A session holding a user turn and a document reply; returns (session_id, message)."""
    session_id = store.active_session_id
    store.append_message(session_id, user_message("Research onboarding"))
    doc = document_message("Onboarding", "<h2>Onboarding</h2>", "# Onboarding notes")
    store.append_message(session_id, doc)
    return session_id, doc


SAMPLE_MARKUP = (
    "<section><h1>One</h1></section>\n"
    "<section><h2>Two</h2></section>\n"
    "<section><h2>Three</h2></section>"
)


@pytest.fixture
def presented_document(store, document_in_store):
    """A document message that already carries a three-slide presentation."""
    session_id, doc = document_in_store
    store.attach_presentation(
        session_id, doc.id, Presentation(markup=SAMPLE_MARKUP, audio=["one.mp3", None])
    )
    return session_id, doc.id

