from chat_capture.candidates import count_candidates, find_candidates, latest_candidate
from chat_capture.errors import ExtractionEmpty
from chat_capture.extract import SourceKind, extract_final
from chat_capture.poller import capture_reply
from fakes import FakePage, chat, reply


def final_of(html, settings, copy_text=None, copy_button=True):
    page = FakePage([chat(reply(html, done=True, copy_button=copy_button))], copy_text=copy_text)
    candidate = latest_candidate(page, settings, 0)
    return extract_final(page, candidate, settings)


def test_plain_copy_payload_loses_to_walker(settings):
    result = final_of("<ul><li>one</li><li>two</li></ul>", settings, copy_text="plain sentence, no markdown")
    assert result.source_kind is SourceKind.DOM_WALK
    assert result.text == "- one\n- two"
    assert result.looks_like_markdown


def test_markdown_copy_payload_wins(settings):
    result = final_of("<h2>Title</h2><ul><li>a</li></ul>", settings, copy_text="## Title\n\n- a")
    assert result.source_kind is SourceKind.COPY_ACTION
    assert result.text == "## Title\n\n- a"


def test_plain_copy_kept_when_walker_is_empty(settings):
    result = final_of("<button>Retry</button>", settings, copy_text="just words")
    assert result.source_kind is SourceKind.COPY_ACTION
    assert result.text == "just words"
    assert not result.looks_like_markdown


def test_missing_copy_button_falls_back_to_walker(settings):
    result = final_of("<p>Some\ntext</p>", settings, copy_text="ignored", copy_button=False)
    assert result.source_kind is SourceKind.DOM_WALK
    assert result.text == "Some text"


def test_plain_text_when_walker_finds_nothing(settings):
    result = final_of("<button>Retry</button>", settings)
    assert result.source_kind is SourceKind.PLAIN_TEXT
    assert result.text == "Retry"


def test_final_text_is_normalized(settings):
    result = final_of("<p>x</p>", settings, copy_text="# Notes\nfirst half\nsecond half")
    assert result.text == "# Notes\nfirst half second half"


def test_no_candidate_gives_empty_result(settings):
    result = extract_final(FakePage([chat()]), None, settings)
    assert result.empty
    assert result.source_kind is SourceKind.PLAIN_TEXT


def test_all_sources_empty_is_reported(settings):
    page = FakePage([chat(), chat(reply("", done=True))])
    result = capture_reply(page, 0, settings, clock=page.clock, sleep=page.sleep)
    assert isinstance(result.error, ExtractionEmpty)
    assert result.markdown == ""


def test_candidates_outside_containers_count_when_no_container_matches(settings):
    page = FakePage(['<div class="markdown">a</div><div class="markdown">b</div>'])
    assert count_candidates(page, settings) == 2
    assert latest_candidate(page, settings, 1).get_text() == "b"
    assert latest_candidate(page, settings, 2) is None


def test_container_scoping_drops_stray_matches(settings):
    page = FakePage([chat(reply("a")) + '<div class="markdown">sidebar</div>'])
    assert [c.get_text() for c in find_candidates(page, settings)] == ["a"]
