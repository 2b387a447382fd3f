import itertools

import pytest

from chat_capture.normalize import (
    close_open_fence,
    count_pipes,
    looks_like_markdown,
    normalize_markdown,
)

SAMPLES = [
    "This is a long\nparagraph that wraps\n\n- item one\n- item two",
    "Intro\n```python\nx = 1\n\n   y = 2  \n```\nafter the fence\nstill after",
    "| Name | Notes |\n| --- | --- |\n| alpha | a long note that\nwrapped |\n| beta | short |",
    "| A | B | C |\n| --- | --- |\n| 1 | 2 |\n\ntext",
    "line one  \nline two\n> quoted\n# Heading\nbody",
    "",
]


@pytest.mark.parametrize("sample", SAMPLES)
def test_normalize_is_idempotent(sample):
    once = normalize_markdown(sample)
    assert normalize_markdown(once) == once


def test_paragraph_lines_are_joined():
    md = "This is a long\nparagraph that wraps\n\n- item one\n- item two\n# Heading\nnext"
    assert normalize_markdown(md) == "This is a long paragraph that wraps\n\n- item one\n- item two\n# Heading\nnext"


def test_fenced_code_is_untouched():
    block = "```python\ndef f():\n    return  1   \n\n```"
    out = normalize_markdown("Intro line\nwraps here\n\n" + block + "\nafter")
    assert block in out
    assert out.startswith("Intro line wraps here\n\n")
    assert out.endswith("```\nafter")


def test_longer_fence_survives_inner_fence():
    md = "````\n```\ninner\nline\n```\n````\nx"
    assert normalize_markdown(md) == md


def test_wrapped_table_row_is_merged():
    md = "| Name | Notes |\n| --- | --- |\n| alpha | a long note that\nwrapped |\n| beta | short |"
    assert normalize_markdown(md) == (
        "| Name | Notes |\n| --- | --- |\n| alpha | a long note that wrapped |\n| beta | short |"
    )


def test_continuation_joins_previous_row():
    md = "| a | b |\n|---|---|\n| 1 | 2 |\ncontinued"
    assert normalize_markdown(md).split("\n")[-1] == "| 1 | 2 | continued"


def test_short_rows_are_padded_when_table_ends():
    md = "| A | B | C |\n| --- | --- |\n| 1 | 2 |\n"
    assert normalize_markdown(md) == "| A | B | C |\n| --- | --- | --- |\n| 1 | 2 |  |\n"


def test_hard_break_is_kept():
    assert normalize_markdown("line one  \nline two") == "line one  \nline two"


def test_escaped_pipes_are_not_counted():
    assert count_pipes("| a\\|b | 1 |") == 3


@pytest.mark.parametrize("text", ["- only item", "1. step", "# Title", "x\n```py\ny\n```", "a\n- b", "see [x](http://y)", "run `ls`", "| a |\n|---|"])
def test_looks_like_markdown(text):
    assert looks_like_markdown(text)


@pytest.mark.parametrize("text", ["plain sentence, no markdown", "", None])
def test_plain_text_is_not_markdown(text):
    assert not looks_like_markdown(text)


def test_close_open_fence():
    assert close_open_fence("```py\nx = 1") == "```py\nx = 1\n```"
    assert close_open_fence("````\n```\n") == "````\n```\n````"
    closed = "```\nx\n```"
    assert close_open_fence(closed) == closed


LINE_SHAPES = ["a | b |", "c |", "- |", "| x | y |", "| --- | --- |", "text", "more text", "", "- item"]


def test_idempotent_over_line_shape_grid():
    for lines in itertools.product(LINE_SHAPES, repeat=4):
        md = "\n".join(lines)
        once = normalize_markdown(md)
        assert normalize_markdown(once) == once, md


def test_rejoined_line_before_separator_becomes_table():
    once = normalize_markdown("a | b |\nc |\n- |")
    assert once == "a | b | c |\n- | --- | --- |"
    assert normalize_markdown(once) == once


def test_text_after_separator_is_not_merged_into_it():
    once = normalize_markdown("| x | y |\n| --- | --- |\nc |")
    assert once == "| x | y |\n| --- | --- |\nc |  |  |"
    assert normalize_markdown(once) == once
