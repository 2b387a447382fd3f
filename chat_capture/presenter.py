"""Terminal sink for a capture turn, rendered with rich."""

from typing import Optional

import pyperclip
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.spinner import Spinner
from rich.text import Text

from .log import log_debug, log_warn
from .normalize import close_open_fence


class TerminalPresenter:
    """Shows a typing spinner, then the reply as it streams, then the final text.

    The live region is redrawn in place, so the normalized final Markdown
    replaces the streamed approximation rather than being printed below it.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        name: str = "Gemini",
        live_preview: bool = True,
        copy_to_clipboard: bool = False,
        code_theme: str = "monokai",
    ):
        self.console = console or Console()
        self.name = name
        self.live_preview = live_preview
        self.copy_to_clipboard = copy_to_clipboard
        self.code_theme = code_theme
        self.buffer = ""
        self._live: Optional[Live] = None

    def _markdown(self, text: str) -> Markdown:
        return Markdown(text, code_theme=self.code_theme)

    def start(self):
        spinner = Spinner("dots", text=Text(f"{self.name} is typing", style="yellow"))
        self._live = Live(spinner, console=self.console, refresh_per_second=8, vertical_overflow="visible")
        self._live.start()

    def on_chunk(self, text: str):
        self.buffer += text
        if self._live is not None and self.live_preview:
            self._live.update(self._markdown(close_open_fence(self.buffer)))

    def on_final(self, markdown: str):
        if not markdown.strip():
            renderable = Text("(empty reply)", style="dim")
        else:
            renderable = self._markdown(markdown)
        if self._live is not None:
            self._live.update(renderable, refresh=True)
        else:
            self.console.print(renderable)

    def on_complete(self, result):
        self.stop()
        if result.aborted:
            self.console.print(Text("(interrupted)", style="dim"))
            return
        if result.error is not None:
            log_debug(f"Turn ended with {type(result.error).__name__}")
        if self.copy_to_clipboard and result.markdown.strip():
            try:
                pyperclip.copy(result.markdown)
                log_debug("Markdown result has been copied to clipboard.")
            except pyperclip.PyperclipException as e:
                log_warn(f"Error copying to clipboard: {e}")

    def stop(self):
        if self._live is not None:
            self._live.stop()
            self._live = None
