"""Interactive shell: type a prompt, watch the chat app's reply in the terminal.

The browser is started separately with ``--remote-debugging-port``; this
shell attaches to it over CDP and leaves it running on exit.
"""

import argparse
import signal
import sys
import threading

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from rich.console import Console

from .candidates import count_candidates
from .config import CaptureSettings, load_config, resolve_settings
from .errors import CaptureError
from .log import log_debug, log_warn, set_debug
from .page import PlaywrightPage, compact_playwright_error
from .poller import capture_reply
from .presenter import TerminalPresenter
from .stream import TurnEvents

BLANK_URLS = ("about:blank", "chrome://newtab/", "chrome://new-tab-page/")
EXIT_WORDS = ("exit", "quit")


def open_chat_page(browser, settings: CaptureSettings, console: Console):
    """Reuse a tab already on the chat app, else a blank tab, else a new one."""
    context = browser.contexts[0] if browser.contexts else browser.new_context()
    pages = context.pages
    console.print(f"[dim]Found {len(pages)} open tabs.[/dim]")

    match = settings.match or settings.url
    page = next((p for p in pages if match and match in p.url), None)
    if page is not None:
        console.print(f"[green]Found existing {settings.name} tab.[/green]")
        page.bring_to_front()
        return page

    page = next((p for p in pages if p.url in BLANK_URLS), None)
    if page is None:
        console.print(f"[blue]Opening new tab for {settings.name}...[/blue]")
        page = context.new_page()
    else:
        console.print(f"[blue]Navigating blank tab to {settings.name}...[/blue]")
    page.goto(settings.url)
    return page


def wait_until_ready(handle: PlaywrightPage, settings: CaptureSettings, console: Console) -> bool:
    console.print(f"[dim]Waiting up to {settings.ready_timeout:g}s for the page (log in if prompted)...[/dim]")
    try:
        handle.wait_for_selector(", ".join(settings.input_selectors), settings.ready_timeout)
        return True
    except CaptureError as e:
        log_warn(f"Timeout waiting for the prompt box: {e}")
        return False


def send_prompt(handle: PlaywrightPage, settings: CaptureSettings, text: str) -> bool:
    page = handle.page
    for sel in settings.input_selectors:
        box = page.locator(sel).first
        try:
            if not box.count() or not box.is_visible():
                continue
            box.click()
            page.keyboard.type(text)
            page.keyboard.press("Enter")
            return True
        except PlaywrightError as exc:
            log_debug(f"Input '{sel}' unusable: {compact_playwright_error(exc)}")
    log_warn("Could not find the chat input box. The page layout might have changed.")
    return False


def run_turn(handle: PlaywrightPage, settings: CaptureSettings, config: dict, console: Console, prompt: str):
    try:
        baseline = count_candidates(handle, settings)
    except CaptureError as e:
        log_warn(f"Could not count existing replies: {e}")
        baseline = 0
    log_debug(f"Baseline: {baseline} replies")
    if not send_prompt(handle, settings, prompt):
        return None

    presenter = TerminalPresenter(
        console=console,
        name=settings.name,
        live_preview=bool(config.get("output", {}).get("stream", True)),
        copy_to_clipboard=bool(config.get("clip", {}).get("enabled")),
    )
    events = TurnEvents()
    events.subscribe(presenter)

    # Ctrl-C stops the turn at the next tick instead of killing the shell.
    abort = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda *_: abort.set())
    presenter.start()
    try:
        return capture_reply(handle, baseline, settings, events=events, abort=abort)
    finally:
        presenter.stop()
        signal.signal(signal.SIGINT, previous)


def chat_loop(handle: PlaywrightPage, settings: CaptureSettings, config: dict, console: Console):
    while True:
        try:
            line = console.input("\n[bold green]You > [/bold green]")
        except (EOFError, KeyboardInterrupt):
            break
        prompt = line.strip()
        if prompt.lower() in EXIT_WORDS:
            break
        if prompt:
            run_turn(handle, settings, config, console, prompt)
    console.print("[blue]Exiting. Browser session remains open for reuse.[/blue]")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Chat with a browser-based assistant from the terminal.")
    parser.add_argument("--port", type=int, default=9233, help="Remote debugging port of the running browser.")
    parser.add_argument("--profile", help="Site profile to use (see chat_capture/models).")
    parser.add_argument("--config", help="Path to a config.yaml overriding the defaults.")
    parser.add_argument("--debug", action="store_true", help="Show debug information.")
    args = parser.parse_args(argv)

    set_debug(args.debug)
    config = load_config(args.config)
    settings = resolve_settings(config, args.profile)
    console = Console()

    with sync_playwright() as p:
        browser_url = f"http://127.0.0.1:{args.port}"
        console.print(f"[blue]Connecting to browser at {browser_url}...[/blue]")
        try:
            browser = p.chromium.connect_over_cdp(browser_url)
        except PlaywrightError as exc:
            console.print(f"[red]Failed to connect on port {args.port}: {compact_playwright_error(exc)}[/red]")
            console.print("Start the browser with --remote-debugging-port first.")
            return 1

        page = open_chat_page(browser, settings, console)
        handle = PlaywrightPage(page)
        handle.keep_visible()
        wait_until_ready(handle, settings, console)
        chat_loop(handle, settings, config, console)
    return 0


if __name__ == "__main__":
    sys.exit(main())
