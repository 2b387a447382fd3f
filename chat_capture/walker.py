"""Rich-text reply -> Markdown.

The walker works on a static snapshot of a rendered reply (the ``inner_html``
of the candidate, parsed with BeautifulSoup). It appends to one output
buffer, keeps a stack of open lists, and lets every block construct ask for
"at least N trailing newlines" instead of appending blank lines blindly, so
nested and adjacent blocks never pile up extra blank lines.
"""

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

DEFAULT_MAX_DEPTH = 200

SKIP_TAGS = {"script", "style", "noscript", "svg", "button", "mat-icon"}
HEADING_RE = re.compile(r"^h([1-6])$")
BACKTICKS_RE = re.compile(r"`+")
WS_RE = re.compile(r"\s+")

LANG_LABEL_SELECTORS = (".code-block-decoration", ".header-formatted")
CODE_SELECTORS = ('code[data-test-id="code-content"]', "pre code", "code", "pre")


@dataclass
class ListContext:
    ordered: bool
    index: int = 0


def longest_backtick_run(text: str) -> int:
    return max((len(m) for m in BACKTICKS_RE.findall(text or "")), default=0)


def fence_for(code: str) -> str:
    """Backtick fence that cannot collide with a run inside ``code``."""
    return "`" * max(3, longest_backtick_run(code) + 1)


def inline_fence(text: str) -> str:
    return "`" * max(1, longest_backtick_run(text) + 1)


def escape_table_cell(text: str) -> str:
    return WS_RE.sub(" ", text or "").replace("|", "\\|").strip()


def _classes(tag: Tag) -> list[str]:
    return tag.get("class") or []


def is_code_block(tag: Tag) -> bool:
    return tag.name in ("code-block", "pre") or "code-block" in _classes(tag)


class MarkdownWalker:
    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.max_depth = max_depth
        self.md = ""
        self.lists: list[ListContext] = []

    # --- buffer helpers ---

    def append(self, text):
        if text:
            self.md += text

    def trailing_newlines(self) -> int:
        return len(self.md) - len(self.md.rstrip("\n"))

    def ensure_newlines(self, count: int):
        # Spaces left before a block boundary are never meaningful.
        self.md = self.md.rstrip(" \t")
        if not self.md:
            return
        current = self.trailing_newlines()
        if current < count:
            self.md += "\n" * (count - current)

    def append_text(self, raw: str):
        text = WS_RE.sub(" ", raw)
        if not self.md or self.md.endswith((" ", "\n")):
            text = text.lstrip()
        self.append(text)

    # --- entry point ---

    def walk(self, root) -> str:
        self.md = ""
        self.lists = []
        self.render_children(root, False, 0)
        return self.md.strip()

    # --- traversal ---

    def render_children(self, el, in_list_item: bool, depth: int):
        for child in list(el.children):
            self.render(child, in_list_item, depth + 1)

    def render(self, node, in_list_item: bool, depth: int):
        if isinstance(node, PreformattedString):
            return  # comments, doctypes, CDATA
        if isinstance(node, NavigableString):
            self.append_text(str(node))
            return
        if not isinstance(node, Tag):
            return

        tag = node.name.lower()
        if tag in SKIP_TAGS:
            return
        if depth > self.max_depth:
            self.append_text(node.get_text(" "))
            return

        if is_code_block(node) and self.code_block(node):
            return
        if tag == "table":
            self.table(node)
            return
        if tag == "br":
            self.append("\n")
            return
        if tag == "hr":
            self.ensure_newlines(2)
            self.append("---")
            self.ensure_newlines(2)
            return
        if tag == "p":
            if in_list_item:
                # Paragraphs of one item share its line.
                if self.md and not self.md.endswith((" ", "\n")):
                    self.append(" ")
                self.render_children(node, True, depth)
            else:
                self.ensure_newlines(2)
                self.render_children(node, False, depth)
                self.ensure_newlines(2)
            return

        m = HEADING_RE.match(tag)
        if m or node.get("role") == "heading":
            level = int(m.group(1)) if m else _aria_level(node)
            self.ensure_newlines(2)
            self.append("#" * level + " ")
            self.render_children(node, False, depth)
            self.ensure_newlines(2)
            return

        if tag in ("ul", "ol"):
            self.list_block(node, tag == "ol", depth)
            return
        if tag == "li":
            self.list_item(node, depth)
            return
        if tag == "blockquote":
            self.blockquote(node, depth)
            return
        if tag in ("strong", "b"):
            self.wrap(node, "**", "**", in_list_item, depth)
            return
        if tag in ("em", "i"):
            self.wrap(node, "_", "_", in_list_item, depth)
            return
        if tag == "code":
            text = node.get_text()
            if text:
                fence = inline_fence(text)
                pad = " " if text.startswith("`") or text.endswith("`") else ""
                self.append(f"{fence}{pad}{text}{pad}{fence}")
            return
        if tag == "a":
            href = node.get("href") or ""
            self.wrap(node, "[", f"]({href})", in_list_item, depth)
            return

        # Unknown wrappers (div, span, custom elements) are transparent.
        self.render_children(node, in_list_item, depth)

    # --- block constructs ---

    def code_block(self, block: Tag) -> bool:
        code_el = None
        for sel in CODE_SELECTORS:
            code_el = block.select_one(sel)
            if code_el is not None:
                break
        if code_el is None:
            if block.name != "pre":
                return False  # custom wrapper without code inside: render normally
            code_el = block

        code = code_el.get_text()
        if code.endswith("\n"):
            code = code[:-1]
        lang = _language_label(block) or _language_class(code_el) or _language_class(block)
        fence = fence_for(code)
        self.ensure_newlines(2)
        self.append(f"{fence}{lang}\n{code}\n{fence}")
        self.ensure_newlines(2)
        return True

    def table(self, table: Tag):
        head_row = None
        thead = table.find("thead")
        if thead is not None:
            head_row = thead.find("tr")
        header = _row_cells(head_row) if head_row is not None else []

        rows = []
        for tr in table.find_all("tr"):
            if tr is head_row or tr.find_parent("table") is not table:
                continue
            cells = _row_cells(tr)
            if cells:
                rows.append(cells)
        if not header and rows:
            header = rows.pop(0)
        if not header:
            return

        width = max([len(header)] + [len(r) for r in rows])

        def pad(cells):
            return cells + [""] * (width - len(cells))

        lines = ["| " + " | ".join(pad(header)) + " |", "| " + " | ".join(["---"] * width) + " |"]
        for row in rows:
            lines.append("| " + " | ".join(pad(row)) + " |")
        self.ensure_newlines(2)
        self.append("\n".join(lines))
        self.ensure_newlines(2)

    def list_block(self, node: Tag, ordered: bool, depth: int):
        nested = bool(self.lists)
        ctx = ListContext(ordered=ordered)
        if ordered:
            try:
                ctx.index = int(node.get("start", 1)) - 1
            except (TypeError, ValueError):
                ctx.index = 0
        gap = 1 if nested else 2
        self.lists.append(ctx)
        self.ensure_newlines(gap)
        self.render_children(node, False, depth)
        self.lists.pop()
        self.ensure_newlines(gap)

    def list_item(self, node: Tag, depth: int):
        self.ensure_newlines(1)
        indent = "  " * max(0, len(self.lists) - 1)
        marker = "-"
        if self.lists and self.lists[-1].ordered:
            self.lists[-1].index += 1
            marker = f"{self.lists[-1].index}."
        self.append(f"{indent}{marker} ")
        self.render_children(node, True, depth)

    def blockquote(self, node: Tag, depth: int):
        self.ensure_newlines(2)
        saved = self.md
        self.md = ""
        self.render_children(node, False, depth)
        content = self.md.strip()
        self.md = saved
        if not content:
            return
        for line in content.split("\n"):
            self.append(f"> {line}".rstrip() + "\n")
        self.ensure_newlines(2)

    def wrap(self, node: Tag, left: str, right: str, in_list_item: bool, depth: int):
        saved = self.md
        self.md = ""
        self.render_children(node, in_list_item, depth)
        inner = self.md.strip()
        self.md = saved
        raw = node.get_text()
        if not inner:
            if raw and raw.isspace():
                self.append_text(" ")
            return
        if raw[:1].isspace() and self.md and not self.md.endswith((" ", "\n")):
            self.append(" ")
        self.append(f"{left}{inner}{right}")
        if raw[-1:].isspace():
            self.append(" ")


def _aria_level(node: Tag) -> int:
    try:
        level = int(node.get("aria-level", 3))
    except (TypeError, ValueError):
        level = 3
    return max(1, min(6, level))


def _row_cells(tr: Tag) -> list[str]:
    return [escape_table_cell(c.get_text()) for c in tr.find_all(["td", "th"], recursive=False)]


def _language_label(block: Tag) -> str:
    for sel in LANG_LABEL_SELECTORS:
        dec = block.select_one(sel)
        if dec is None:
            continue
        span = next((s for s in dec.find_all("span") if s.get_text().strip()), None)
        if span is not None:
            return WS_RE.sub(" ", span.get_text()).strip().lower()
    return ""


def _language_class(el: Tag) -> str:
    for cls in _classes(el):
        for prefix in ("language-", "lang-"):
            if cls.startswith(prefix) and len(cls) > len(prefix):
                return cls[len(prefix):].lower()
    return ""


def walk(root, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    """Render the descendants of ``root`` as Markdown."""
    return MarkdownWalker(max_depth=max_depth).walk(root)


def html_to_markdown(html: str, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    return walk(soup, max_depth=max_depth)
