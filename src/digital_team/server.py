"""FastAPI web server for digital-team."""

import logging
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from .config import get_history_path
from .controller import ConversationController
from .core import Attachment, Message, Session
from .endpoint import EndpointClient
from .generation import GenerationClient
from .playback import AsyncioScheduler, ClientAudioPlayer, PlaybackEngine
from .storage import FileSlot, MemorySlot
from .store import SessionStore
from .viewer import PresentationViewer

logger = logging.getLogger(__name__)

app = FastAPI(title="digital-team", version="0.1.0")

# Lazily built on first request; tests reset these to None.
_store: SessionStore | None = None
_controller: ConversationController | None = None
_viewer: PresentationViewer | None = None


def _get_store() -> SessionStore:
    global _store
    if _store is None:
        _store = SessionStore(FileSlot(get_history_path()), MemorySlot())
        logger.info("Loaded %d sessions from %s", len(_store.sessions), get_history_path())
    return _store


def _get_controller() -> ConversationController:
    global _controller
    if _controller is None:
        generation = GenerationClient()
        _controller = ConversationController(
            _get_store(),
            EndpointClient(),
            formatter=generation,
            content_generator=generation,
        )
    return _controller


def _get_viewer() -> PresentationViewer:
    global _viewer
    if _viewer is None:
        engine = PlaybackEngine(AsyncioScheduler(), ClientAudioPlayer())
        _viewer = PresentationViewer(_get_store(), _get_controller(), engine)
    return _viewer


class SelectSession(BaseModel):
    session_id: str


class OpenPresentation(BaseModel):
    session_id: str
    message_id: str


class PresentationOptions(BaseModel):
    featured_service: str
    announcement_title: str = ""
    announcement_content: str = ""
    announcement_closing: str = ""
    visuals: str = ""


class PlaybackEvent(BaseModel):
    event: str
    token: int | None = None


def _session_to_dict(session: Session, active_id: str | None) -> dict:
    return {
        "id": session.id,
        "title": session.title,
        "message_count": len(session.messages),
        "created": session.created.isoformat(),
        "updated": session.last_activity.isoformat(),
        "active": session.id == active_id,
    }


def _message_to_dict(msg: Message) -> dict:
    return {
        "id": msg.id,
        "sender": msg.sender,
        "type": msg.kind,
        "text": msg.text,
        "title": msg.title,
        "timestamp": msg.timestamp.isoformat(),
        "has_presentation": msg.presentation is not None,
    }


# ── Routes ───────────────────────────────────────────────────────


@app.get("/")
async def index():
    """Serve the frontend."""
    html_path = Path(__file__).parent / "static" / "index.html"
    if not html_path.exists():
        raise HTTPException(status_code=404, detail="Frontend not found")
    return HTMLResponse(html_path.read_text(encoding="utf-8"))


@app.get("/api/sessions")
async def get_sessions():
    """Return all sessions, most recent first."""
    store = _get_store()
    active_id = store.active_session_id
    return {
        "active_session_id": active_id,
        "busy": _get_controller().busy,
        "sessions": [_session_to_dict(s, active_id) for s in store.list_sessions_by_recency()],
    }


@app.post("/api/sessions")
async def new_session():
    """Start a new chat, reusing a blank one if it is the most recent."""
    session_id = _get_store().create_session()
    _get_viewer().forget()
    return {"session_id": session_id}


@app.put("/api/sessions/active")
async def select_session(body: SelectSession):
    try:
        _get_store().select_session(body.session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")
    _get_viewer().forget()
    return {"active_session_id": body.session_id}


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str):
    """Return a session with its messages."""
    store = _get_store()
    session = store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    data = _session_to_dict(session, store.active_session_id)
    data["messages"] = [_message_to_dict(m) for m in session.messages]
    return data


@app.delete("/api/sessions/{session_id}")
async def delete_session(session_id: str):
    store = _get_store()
    if not store.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    _get_viewer().forget()
    return {"deleted": session_id, "active_session_id": store.active_session_id}


@app.post("/api/messages")
async def send_message(request: Request):
    """Send a user turn as JSON ``{"message"}`` or multipart with a ``file``."""
    attachment = None
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        text = str(form.get("message") or "")
        upload = form.get("file")
        if upload is not None and hasattr(upload, "read"):
            attachment = Attachment(
                filename=upload.filename or "upload",
                content=await upload.read(),
                content_type=upload.content_type or "application/octet-stream",
            )
    else:
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Expected a JSON body")
        text = str(body.get("message") or "") if isinstance(body, dict) else ""

    controller = _get_controller()
    session_id = _get_store().active_session_id
    try:
        reply = await controller.send_message(text, attachment)
    except ValueError:
        raise HTTPException(status_code=400, detail="Message is empty")
    return {"session_id": session_id, "reply": _message_to_dict(reply)}


@app.post("/api/sessions/{session_id}/documents/{message_id}/presentation")
async def generate_presentation(session_id: str, message_id: str, options: PresentationOptions):
    """Generate a deck for a document message and open it."""
    viewer = _get_viewer()
    try:
        created = await viewer.generate(session_id, message_id, **options.model_dump())
    except KeyError:
        raise HTTPException(status_code=404, detail="Document not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"created": created, "presentation": viewer.snapshot()}


@app.post("/api/presentation/open")
async def open_presentation(body: OpenPresentation):
    viewer = _get_viewer()
    try:
        viewer.open(body.session_id, body.message_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Document not found")
    return viewer.snapshot()


@app.get("/api/presentation")
async def get_presentation():
    return _get_viewer().snapshot()


@app.post("/api/presentation/events")
async def presentation_event(body: PlaybackEvent):
    viewer = _get_viewer()
    if not viewer.engine.is_open:
        raise HTTPException(status_code=404, detail="No presentation is open")
    try:
        viewer.handle_event(body.event, body.token)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return viewer.snapshot()


@app.delete("/api/presentation")
async def close_presentation():
    viewer = _get_viewer()
    viewer.close()
    return viewer.snapshot()


@app.post("/api/presentation/regenerate")
async def regenerate_presentation(options: PresentationOptions):
    viewer = _get_viewer()
    try:
        created = await viewer.regenerate(**options.model_dump())
    except LookupError:
        raise HTTPException(status_code=404, detail="No presentation is in view")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"created": created, "presentation": viewer.snapshot()}
