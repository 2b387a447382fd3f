"""Reflow hard-wrapped Markdown without touching code fences or tables."""

import re

FENCE_OPEN_RE = re.compile(r"^\s*(`{3,})")
TABLE_SEP_RE = re.compile(r"^\s*\|?[-:\s]+\|[-:\s|]*$")
BLOCK_START_RE = re.compile(r"^(#{1,6}\s|>|\s*[-*+]\s|\s*\d+\.\s|---$|___$|\*\*\*$|\s*•\s)")
MARKDOWN_HINT_RE = re.compile(
    r"```|^\s{0,3}#{1,6}\s|^\s*[-*+]\s|^\s*\d+\.\s|\|\s*---|\[[^\]]+\]\([^)]+\)|`[^`]+`",
    re.M,
)
HARD_BREAK = "  "


def is_table_sep_line(line: str) -> bool:
    return bool(TABLE_SEP_RE.match(line))


def count_pipes(line: str) -> int:
    """Pipes that are not escaped with a backslash."""
    count = 0
    for i, ch in enumerate(line):
        if ch == "|" and (i == 0 or line[i - 1] != "\\"):
            count += 1
    return count


def is_block_start(line: str) -> bool:
    return bool(BLOCK_START_RE.match(line))


def looks_like_markdown(text) -> bool:
    if not text:
        return False
    return bool(MARKDOWN_HINT_RE.search(text))


def _closes_fence(line: str, width: int) -> bool:
    stripped = line.strip()
    run = len(stripped) - len(stripped.lstrip("`"))
    return run >= width and not stripped[run:].strip()


def _clean(line: str) -> str:
    # Trim like a paragraph line but keep a trailing hard break.
    body = line.strip()
    if body and line.rstrip("\r").endswith(HARD_BREAK):
        return body + HARD_BREAK
    return body


def _pad_table(out: list[str], start: int, pipes: int):
    for i in range(start, len(out)):
        row = out[i].rstrip()
        missing = pipes - count_pipes(row)
        if missing <= 0 or not row.endswith("|"):
            continue
        filler = " --- |" if is_table_sep_line(row) else "  |"
        out[i] = row + filler * missing


def normalize_markdown(md: str) -> str:
    """Rejoin soft-wrapped paragraph lines and table rows.

    Fenced code passes through byte for byte. A fence closes only on a line
    of at least as many backticks as opened it.
    """
    lines = (md or "").split("\n")
    out: list[str] = []
    fence_width = 0
    in_table = False
    table_pipes = 0
    table_start = 0
    paragraph = False

    def end_table():
        nonlocal in_table, table_pipes
        if in_table:
            _pad_table(out, table_start, table_pipes)
        in_table = False
        table_pipes = 0

    for i, line in enumerate(lines):
        trimmed = line.strip()

        if fence_width:
            out.append(line)
            if _closes_fence(line, fence_width):
                fence_width = 0
            continue
        m = FENCE_OPEN_RE.match(line)
        if m:
            end_table()
            fence_width = len(m.group(1))
            paragraph = False
            out.append(line)
            continue

        next_line = lines[i + 1] if i + 1 < len(lines) else ""
        pipes = count_pipes(line)

        if not in_table and pipes >= 2 and is_table_sep_line(next_line):
            in_table = True
            table_pipes = pipes
            table_start = len(out)
            paragraph = False
            out.append(line)
            continue

        if in_table:
            if trimmed == "":
                end_table()
                out.append("")
                continue
            if is_table_sep_line(line) or pipes >= table_pipes:
                out.append(line)
                continue
            prev = out[-1]
            prev_sep = is_table_sep_line(prev)
            prev_open = count_pipes(prev) < table_pipes and not prev_sep
            if prev_sep or (trimmed.startswith("|") and not prev_open):
                # A row that wrapped mid-cell; its tail follows on the next line.
                out.append(line)
            else:
                out[-1] = f"{prev.rstrip()} {trimmed}"
            continue

        if trimmed == "":
            out.append("")
            paragraph = False
            continue

        if is_block_start(line):
            out.append(line)
            paragraph = False
            continue

        prev = out[-1] if out else ""
        if paragraph and prev.strip() and not is_block_start(prev) and not prev.endswith(HARD_BREAK):
            joined = f"{prev} {_clean(line)}"
            out[-1] = joined
            if count_pipes(joined) >= 2 and is_table_sep_line(next_line):
                # The rejoined line is a table header.
                in_table = True
                table_pipes = count_pipes(joined)
                table_start = len(out) - 1
                paragraph = False
                continue
        else:
            out.append(_clean(line))
        paragraph = True

    end_table()
    return "\n".join(out)


def close_open_fence(text: str) -> str:
    """Close a fence left open by a reply that is still streaming."""
    width = 0
    for line in (text or "").split("\n"):
        if width:
            if _closes_fence(line, width):
                width = 0
            continue
        m = FENCE_OPEN_RE.match(line)
        if m:
            width = len(m.group(1))
    if not width:
        return text
    sep = "" if text.endswith("\n") else "\n"
    return f"{text}{sep}{'`' * width}"
