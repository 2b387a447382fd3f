"""Per-turn stream bookkeeping and the callbacks a presenter subscribes to."""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .log import log_warn


@dataclass
class StreamState:
    last_observed_length: int = 0
    stable_ticks: int = 0
    started_at: float = field(default_factory=time.monotonic)
    completed: bool = False

    def mark_completed(self) -> bool:
        """Set ``completed`` once; returns False if it was already set."""
        if self.completed:
            return False
        self.completed = True
        return True


class TextDiffEmitter:
    """Turns successive snapshots of a growing reply into new suffixes."""

    def __init__(self, state: StreamState):
        self.state = state
        self.emitted = ""

    def feed(self, text: str) -> str:
        """Return the part of ``text`` not yet emitted, or "" if nothing grew.

        Shrinking snapshots (the page re-rendering a block) are ignored so the
        observed length never goes backwards while the turn is open.
        """
        if self.state.completed:
            return ""
        text = text or ""
        if len(text) <= self.state.last_observed_length:
            return ""
        chunk = text[self.state.last_observed_length:]
        self.state.last_observed_length = len(text)
        self.state.stable_ticks = 0
        self.emitted += chunk
        return chunk


Handler = Callable[..., None]


class TurnEvents:
    """Subscription object handed to the poller for one conversation turn.

    on_chunk(text)            incremental raw text while the reply grows
    on_final(markdown)        normalized Markdown that replaces the stream
    on_complete(result)       extraction finished (success or timeout)
    """

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = {"chunk": [], "final": [], "complete": []}

    def on_chunk(self, fn: Handler) -> Handler:
        self._handlers["chunk"].append(fn)
        return fn

    def on_final(self, fn: Handler) -> Handler:
        self._handlers["final"].append(fn)
        return fn

    def on_complete(self, fn: Handler) -> Handler:
        self._handlers["complete"].append(fn)
        return fn

    def subscribe(self, presenter) -> None:
        """Attach every ``on_*`` callback method that ``presenter`` defines."""
        for kind in self._handlers:
            fn: Optional[Handler] = getattr(presenter, f"on_{kind}", None)
            if callable(fn):
                self._handlers[kind].append(fn)

    def _fire(self, kind: str, *args):
        for fn in list(self._handlers[kind]):
            try:
                fn(*args)
            except Exception as e:
                # A broken sink must not end the turn.
                log_warn(f"{kind} handler {getattr(fn, '__name__', fn)!r} failed: {e}")

    def emit_chunk(self, text: str):
        if text:
            self._fire("chunk", text)

    def emit_final(self, markdown: str):
        self._fire("final", markdown)

    def emit_complete(self, result):
        self._fire("complete", result)
