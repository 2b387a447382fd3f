"""Failure kinds of a capture turn.

None of these escape ``capture_reply``: a turn records the error on its
``TurnResult`` and degrades to the best text it has.
"""


class CaptureError(RuntimeError):
    pass


class NoCandidateFound(CaptureError):
    """No reply beyond the baseline appeared before the appearance timeout."""


class ExtractionEmpty(CaptureError):
    """Copy action, walker and plain text all came back empty."""


class CopyInterceptFailure(CaptureError):
    """The copy button was missing or the clipboard shim never fired."""


class TimeoutExceeded(CaptureError):
    """The hard ceiling forced completion while the reply was still open."""


class PageUnavailable(CaptureError):
    """The page handle could not answer an inspection request."""
