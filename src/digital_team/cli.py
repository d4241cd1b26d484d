"""CLI entry point for digital-team."""

import logging

import click
import uvicorn

from . import __version__


@click.group()
@click.version_option(version=__version__, prog_name="digital-team")
def main():
    """Chat with the processing endpoint and play back generated presentations."""
    pass


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity.",
)
def serve(port: int, host: str, log_level: str):
    """Start the web interface."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    click.echo(f"Starting digital-team on http://{host}:{port}")
    uvicorn.run("digital_team.server:app", host=host, port=port, reload=False, log_level=log_level.lower())


@main.command()
def sessions():
    """List stored chat sessions, most recent first."""
    from .config import get_history_path
    from .storage import FileSlot, MemorySlot
    from .store import SessionStore

    store = SessionStore(FileSlot(get_history_path()), MemorySlot())
    for session in store.list_sessions_by_recency():
        stamp = session.last_activity.strftime("%Y-%m-%d %H:%M")
        click.echo(f"{stamp}  {len(session.messages):>4}  {session.title}  ({session.id})")
