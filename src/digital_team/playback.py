"""Slideshow playback state machine.

States are ``idle`` (nothing open, or an empty deck), ``paused`` at slide
``i`` and ``playing`` at slide ``i``. Everything goes through
``PlaybackEngine.dispatch``: navigation from the user, and completion
callbacks from the narration audio and the autoplay timer.

While playing, a slide with narration holds one audio resource and moves
on when it ends; a slide without narration, or whose narration fails,
holds one timer instead. The engine owns at most one of each and tears
both down on every transition, so nothing outlives the slide it was
started for. Callbacks carry the generation number of the resource that
raised them; anything from an earlier generation is ignored.
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional, Sequence

from .config import AUTOPLAY_INTERVAL
from .core import Slide

logger = logging.getLogger(__name__)


class Status(str, Enum):
    IDLE = "idle"
    PAUSED = "paused"
    PLAYING = "playing"


class Event(str, Enum):
    OPEN = "open"
    CLOSE = "close"
    NEXT = "next"
    PREV = "prev"
    TOGGLE = "toggle"
    AUDIO_ENDED = "audio_ended"
    AUDIO_FAILED = "audio_failed"
    TIMER_FIRED = "timer_fired"


# ── Resource seams ───────────────────────────────────────────────


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...


class Scheduler(ABC):
    """Runs a callback once after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler(Scheduler):
    """Timers on the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return _AsyncioTimer(loop.call_later(delay, callback))


class _AsyncioTimer(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class AudioHandle(ABC):
    @abstractmethod
    def stop(self) -> None:
        """Stop playback and detach the completion callbacks."""
        ...


class AudioPlayer(ABC):
    """Starts narration audio.

    ``play`` raises if the audio cannot be started at all; failures after
    a successful start are reported through ``on_failed``.
    """

    @abstractmethod
    def play(
        self,
        ref: str,
        on_ended: Callable[[], None],
        on_failed: Callable[[], None],
    ) -> AudioHandle:
        ...


class AudioCue(AudioHandle):
    """Narration handed to the page; the page reports back when it ends."""

    def __init__(self, ref: str, token: int, on_ended: Callable[[], None], on_failed: Callable[[], None]):
        self.ref = ref
        self.token = token
        self.active = True
        self._on_ended = on_ended
        self._on_failed = on_failed

    def stop(self) -> None:
        self.active = False
        self._on_ended = None
        self._on_failed = None

    def ended(self) -> None:
        callback = self._on_ended
        self.stop()
        if callback is not None:
            callback()

    def failed(self) -> None:
        callback = self._on_failed
        self.stop()
        if callback is not None:
            callback()


class ClientAudioPlayer(AudioPlayer):
    """Audio played by the browser page.

    The engine's "audio resource" is the current cue; the page reads it
    from the snapshot, plays it, and reports the outcome with the cue's
    token. Reports for any other token are ignored.
    """

    def __init__(self):
        self._tokens = itertools.count(1)
        self.current: Optional[AudioCue] = None

    def play(self, ref: str, on_ended, on_failed) -> AudioCue:
        if self.current is not None:
            self.current.stop()
        self.current = AudioCue(ref, next(self._tokens), on_ended, on_failed)
        return self.current

    @property
    def active_cue(self) -> Optional[AudioCue]:
        if self.current is not None and self.current.active:
            return self.current
        return None

    def report(self, token: int, ended: bool) -> bool:
        cue = self.active_cue
        if cue is None or cue.token != token:
            logger.debug("Ignoring stale audio report for token %s", token)
            return False
        if ended:
            cue.ended()
        else:
            cue.failed()
        return True


# ── Engine ───────────────────────────────────────────────────────


class PlaybackEngine:
    """Finite-state machine over one open deck of slides."""

    def __init__(
        self,
        scheduler: Scheduler,
        audio_player: AudioPlayer,
        interval: float = AUTOPLAY_INTERVAL,
    ):
        self.scheduler = scheduler
        self.audio_player = audio_player
        self.interval = interval
        self.slides: list[Slide] = []
        self.index = 0
        self.status = Status.IDLE
        self.is_open = False
        self._audio: AudioHandle | None = None
        self._timer: TimerHandle | None = None
        self._generation = 0

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def count(self) -> int:
        return len(self.slides)

    @property
    def last_index(self) -> int:
        return len(self.slides) - 1

    @property
    def is_playing(self) -> bool:
        return self.status is Status.PLAYING

    @property
    def current_slide(self) -> Slide | None:
        if not self.slides:
            return None
        return self.slides[self.index]

    @property
    def audio_active(self) -> bool:
        return self._audio is not None

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    # ── Convenience wrappers ─────────────────────────────────────────

    def open(self, slides: Sequence[Slide]) -> None:
        self.dispatch(Event.OPEN, slides=slides)

    def close(self) -> None:
        self.dispatch(Event.CLOSE)

    def next(self) -> None:
        self.dispatch(Event.NEXT)

    def prev(self) -> None:
        self.dispatch(Event.PREV)

    def toggle_play(self) -> None:
        self.dispatch(Event.TOGGLE)

    # ── Transitions ──────────────────────────────────────────────────

    def dispatch(
        self,
        event: Event | str,
        slides: Sequence[Slide] | None = None,
        generation: int | None = None,
    ) -> None:
        event = Event(event)
        before = (self.status, self.index)

        if event is Event.OPEN:
            self._teardown()
            self.slides = list(slides or [])
            self.index = 0
            self.is_open = True
            self.status = Status.PAUSED if self.slides else Status.IDLE
        elif event is Event.CLOSE:
            self._teardown()
            self.slides = []
            self.index = 0
            self.is_open = False
            self.status = Status.IDLE
        elif event is Event.NEXT:
            if self.slides and self.index < self.last_index:
                self._move(self.index + 1)
        elif event is Event.PREV:
            if self.slides and self.index > 0:
                self._move(self.index - 1)
        elif event is Event.TOGGLE:
            self._toggle()
        elif event in (Event.AUDIO_ENDED, Event.TIMER_FIRED):
            if self._is_current(generation):
                self._teardown()
                self._auto_advance()
        elif event is Event.AUDIO_FAILED:
            if self._is_current(generation):
                logger.warning("Narration failed on slide %d, falling back to timer", self.index)
                self._stop_audio()
                if self.is_playing:
                    self._start_timer()

        logger.debug("Playback %s: %s@%d -> %s@%d", event.value, before[0].value, before[1],
                     self.status.value, self.index)

    def _toggle(self) -> None:
        if not self.slides:
            return
        if self.is_playing:
            self._teardown()
            self.status = Status.PAUSED
            return
        if self.index == self.last_index:
            self.index = 0
        self.status = Status.PLAYING
        self._start_slide()

    def _move(self, index: int) -> None:
        self._teardown()
        self.index = index
        if self.is_playing:
            self._start_slide()

    def _auto_advance(self) -> None:
        if not self.is_playing:
            return
        if self.index < self.last_index:
            self.index += 1
            self._start_slide()
        else:
            # No looping: the deck stops on its last slide.
            self.status = Status.PAUSED

    # ── Resources ────────────────────────────────────────────────────

    def _is_current(self, generation: int | None) -> bool:
        return generation is None or generation == self._generation

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _start_slide(self) -> None:
        self._teardown()
        slide = self.current_slide
        if slide is None:
            return
        if not slide.audio:
            self._start_timer()
            return

        generation = self._next_generation()
        try:
            handle = self.audio_player.play(
                slide.audio,
                on_ended=lambda: self.dispatch(Event.AUDIO_ENDED, generation=generation),
                on_failed=lambda: self.dispatch(Event.AUDIO_FAILED, generation=generation),
            )
        except Exception as e:
            logger.warning("Error playing audio %s: %s", slide.audio, e)
            self._start_timer()
            return

        if generation != self._generation:
            # A callback fired during play() and moved the engine on.
            handle.stop()
            return
        self._audio = handle

    def _start_timer(self) -> None:
        self._cancel_timer()
        generation = self._next_generation()
        self._timer = self.scheduler.call_later(
            self.interval,
            lambda: self.dispatch(Event.TIMER_FIRED, generation=generation),
        )

    def _stop_audio(self) -> None:
        if self._audio is not None:
            self._audio.stop()
            self._audio = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _teardown(self) -> None:
        self._stop_audio()
        self._cancel_timer()
        self._next_generation()
