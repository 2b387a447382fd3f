"""Polling a live page until a new reply has finished streaming.

There is no change notification to subscribe to, so each turn re-inspects
the document every ``poll_interval`` seconds and decides from the observed
text length (and any UI "done" control) whether the reply is still being
typed.

    WAITING -> GROWING <-> STABILIZING -> COMPLETE
       \\-> TIMED_OUT

A hard ceiling forces COMPLETE regardless of what the reply is doing.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .candidates import has_completion_marker, latest_candidate
from .config import CaptureSettings
from .errors import CaptureError, ExtractionEmpty, NoCandidateFound, TimeoutExceeded
from .extract import ExtractionResult, extract_final
from .log import log_debug, log_warn
from .page import PageHandle
from .stream import StreamState, TextDiffEmitter, TurnEvents


class Phase(Enum):
    WAITING = "waiting"
    GROWING = "growing"
    STABILIZING = "stabilizing"
    COMPLETE = "complete"
    TIMED_OUT = "timed-out"


TERMINAL = (Phase.COMPLETE, Phase.TIMED_OUT)


@dataclass
class Observation:
    """One poll tick. ``text`` is None while no new reply exists."""

    text: Optional[str] = None
    ui_complete: bool = False


class CompletionDetector:
    def __init__(self, settings: CaptureSettings, started_at: float):
        self.settings = settings
        self.state = StreamState(started_at=started_at)
        self.emitter = TextDiffEmitter(self.state)
        self.phase = Phase.WAITING
        self.seen_candidate = False
        self.hit_ceiling = False

    @property
    def done(self) -> bool:
        return self.phase in TERMINAL

    def _move(self, phase: Phase):
        if phase is not self.phase:
            log_debug(f"Reply {self.phase.value} -> {phase.value} "
                      f"(len={self.state.last_observed_length}, stable={self.state.stable_ticks})")
            self.phase = phase

    def observe(self, obs: Observation, now: float) -> str:
        """Advance on one observation; returns newly streamed text, if any."""
        if self.done:
            return ""
        elapsed = now - self.state.started_at
        chunk = ""

        if obs.text is None:
            if not self.seen_candidate and elapsed >= min(self.settings.appear_timeout, self.settings.hard_timeout):
                self._move(Phase.TIMED_OUT)
                self.state.mark_completed()
                return ""
        else:
            if not self.seen_candidate:
                self.seen_candidate = True
                self._move(Phase.GROWING)
            previous = self.state.last_observed_length
            chunk = self.emitter.feed(obs.text)
            if chunk:
                self._move(Phase.GROWING)
            elif previous > 0 and len(obs.text) == previous:
                self.state.stable_ticks += 1
                self._move(Phase.STABILIZING)

            if obs.ui_complete:
                log_debug("UI completion marker present")
                self._finish()
                return chunk
            if self.state.stable_ticks >= self.settings.stable_ticks:
                self._finish()
                return chunk

        if self.seen_candidate and elapsed >= self.settings.hard_timeout:
            self.hit_ceiling = True
            self._finish()
        return chunk

    def _finish(self):
        self._move(Phase.COMPLETE)
        self.state.mark_completed()


@dataclass
class TurnResult:
    phase: Phase
    markdown: str = ""
    streamed: str = ""
    extraction: Optional[ExtractionResult] = None
    error: Optional[CaptureError] = None
    aborted: bool = False


def _observe(page: PageHandle, settings: CaptureSettings, baseline: int):
    try:
        candidate = latest_candidate(page, settings, baseline)
        if candidate is None:
            return None, Observation()
        text = page.inner_text(candidate)
        done = has_completion_marker(page, candidate, settings)
        return candidate, Observation(text=text or "", ui_complete=done)
    except CaptureError as e:
        log_debug(f"Poll tick failed: {e}")
        return None, Observation()


def capture_reply(
    page: PageHandle,
    baseline: int,
    settings: CaptureSettings,
    events: Optional[TurnEvents] = None,
    abort=None,
    clock=time.monotonic,
    sleep=time.sleep,
) -> TurnResult:
    """Follow the reply that appears after ``baseline`` existing ones.

    ``abort`` is anything with ``is_set()`` (e.g. ``threading.Event``); it is
    checked once per tick. Errors are reported on the result, never raised.
    """
    events = events or TurnEvents()
    detector = CompletionDetector(settings, started_at=clock())
    candidate = None

    while True:
        if abort is not None and abort.is_set():
            log_debug("Capture aborted by caller")
            result = TurnResult(phase=detector.phase, streamed=detector.emitter.emitted, aborted=True)
            events.emit_complete(result)
            return result

        seen, obs = _observe(page, settings, baseline)
        if seen is not None:
            candidate = seen
        events.emit_chunk(detector.observe(obs, clock()))
        if detector.done:
            break
        sleep(settings.poll_interval)

    result = TurnResult(phase=detector.phase, streamed=detector.emitter.emitted)
    if detector.phase is Phase.TIMED_OUT:
        result.error = NoCandidateFound(f"no reply appeared within {settings.appear_timeout:g}s")
        log_warn(str(result.error))
        events.emit_complete(result)
        return result

    if detector.hit_ceiling:
        result.error = TimeoutExceeded(f"reply still open after {settings.hard_timeout:g}s; using what is there")
        log_warn(str(result.error))

    # Re-resolve by position: the element may have been replaced since the last tick.
    try:
        candidate = latest_candidate(page, settings, baseline) or candidate
    except CaptureError as e:
        log_debug(f"Could not re-resolve reply: {e}")

    extraction = extract_final(page, candidate, settings)
    result.extraction = extraction
    result.markdown = extraction.text
    if extraction.empty:
        result.error = ExtractionEmpty("copy action, walker and plain text were all empty")
        log_warn(str(result.error))
    events.emit_final(result.markdown)
    events.emit_complete(result)
    return result
