import io

from rich.console import Console

from chat_capture import cli
from chat_capture.config import CaptureSettings


class Tab:
    def __init__(self, url):
        self.url = url
        self.front = False
        self.visited = []

    def bring_to_front(self):
        self.front = True

    def goto(self, url):
        self.visited.append(url)


class Context:
    def __init__(self, tabs):
        self.pages = tabs
        self.opened = []

    def new_page(self):
        tab = Tab("about:blank")
        self.opened.append(tab)
        return tab


class Browser:
    def __init__(self, tabs):
        self.contexts = [Context(tabs)]


def quiet():
    return Console(file=io.StringIO())


def gemini():
    return CaptureSettings(name="Gemini", url="https://gemini.google.com/app", match="gemini.google.com")


def test_existing_chat_tab_is_reused():
    chat_tab = Tab("https://gemini.google.com/app/abc")
    browser = Browser([Tab("https://example.com"), chat_tab])
    assert cli.open_chat_page(browser, gemini(), quiet()) is chat_tab
    assert chat_tab.front
    assert chat_tab.visited == []


def test_blank_tab_is_navigated():
    blank = Tab("about:blank")
    browser = Browser([Tab("https://example.com"), blank])
    assert cli.open_chat_page(browser, gemini(), quiet()) is blank
    assert blank.visited == ["https://gemini.google.com/app"]


def test_new_tab_when_nothing_fits():
    browser = Browser([Tab("https://example.com")])
    page = cli.open_chat_page(browser, gemini(), quiet())
    assert browser.contexts[0].opened == [page]
    assert page.visited == ["https://gemini.google.com/app"]


def test_exit_word_ends_loop(monkeypatch):
    prompts = []
    monkeypatch.setattr(cli, "run_turn", lambda *args: prompts.append(args[-1]))
    console = quiet()
    answers = iter(["hello", "  ", "QUIT", "never sent"])
    monkeypatch.setattr(console, "input", lambda *_: next(answers))

    cli.chat_loop(None, gemini(), {}, console)

    assert prompts == ["hello"]
