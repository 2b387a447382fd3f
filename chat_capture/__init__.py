"""Capture replies from a browser chat app and turn them into Markdown."""

from .config import CaptureSettings, load_config, resolve_settings
from .errors import (
    CaptureError,
    CopyInterceptFailure,
    ExtractionEmpty,
    NoCandidateFound,
    PageUnavailable,
    TimeoutExceeded,
)
from .extract import ExtractionResult, SourceKind, extract_final
from .normalize import looks_like_markdown, normalize_markdown
from .page import PageHandle, PlaywrightPage
from .poller import CompletionDetector, Observation, Phase, TurnResult, capture_reply
from .stream import StreamState, TextDiffEmitter, TurnEvents
from .walker import html_to_markdown, walk

__version__ = "0.1.0"
