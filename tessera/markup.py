"""Lossless markup trees for text extraction.

The parser adapter records where every token starts in the source and
slices the source between consecutive tokens, so a tree always serialises
back to the exact input, entities and attribute quoting included. The tree
itself is a plain ``children``/``text`` structure and knows nothing about
the parser that produced it.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Iterator, List, Optional, Tuple

from .errors import MarkupParseError

MARKUP_PATTERN = re.compile(r"</?[a-z][\s\S]*>", re.IGNORECASE)
# Tag-like syntax left in a data token means the tokenizer gave up on it.
INCOMPLETE_TAG_PATTERN = re.compile(r"<[A-Za-z/!?]")

RAW_TEXT_ELEMENTS = frozenset({"script", "style"})
VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

Token = Tuple[str, Optional[str], Tuple[int, int]]


def looks_like_markup(text: str) -> bool:
    """Detect tag-like syntax in a cell."""

    return bool(text) and bool(MARKUP_PATTERN.search(text))


@dataclass
class MarkupNode:
    """A node of a markup tree.

    ``kind`` is ``root``, ``element``, ``text`` or ``raw``. Text and raw
    nodes hold their source slice in ``text``; elements hold their source
    tags in ``opening`` and ``closing`` (empty when implied).
    """

    kind: str
    tag: Optional[str] = None
    text: str = ""
    opening: str = ""
    closing: str = ""
    children: List["MarkupNode"] = field(default_factory=list)

    @property
    def has_visible_text(self) -> bool:
        return self.kind == "text" and bool(html.unescape(self.text).strip())


class _TokenRecorder(HTMLParser):
    """Records token kinds and start positions; content comes from slicing."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.tokens: List[Token] = []

    def _record(self, kind: str, tag: Optional[str] = None) -> None:
        self.tokens.append((kind, tag, self.getpos()))

    def handle_starttag(self, tag, attrs):
        self._record("start", tag)

    def handle_startendtag(self, tag, attrs):
        self._record("startend", tag)

    def handle_endtag(self, tag):
        self._record("end", tag)

    def handle_data(self, data):
        self._record("data")

    def handle_comment(self, data):
        self._record("raw")

    def handle_decl(self, decl):
        self._record("raw")

    def handle_pi(self, data):
        self._record("raw")

    def unknown_decl(self, data):
        self._record("raw")


def _line_offsets(text: str) -> List[int]:
    offsets = [0]
    for index, char in enumerate(text):
        if char == "\n":
            offsets.append(index + 1)
    return offsets


def _slice_tokens(text: str, tokens: List[Token]) -> List[Tuple[str, Optional[str], str]]:
    """Turn recorded token positions into (kind, tag, source slice) triples."""

    lines = _line_offsets(text)
    starts: List[int] = []
    for _, _, (line, column) in tokens:
        if line - 1 >= len(lines):
            raise MarkupParseError(f"Token position {line}:{column} is out of range.")
        starts.append(lines[line - 1] + column)

    sliced: List[Tuple[str, Optional[str], str]] = []
    if not starts or starts[0] != 0:
        first = starts[0] if starts else len(text)
        if first:
            sliced.append(("raw", None, text[:first]))

    for index, (kind, tag, _) in enumerate(tokens):
        start = starts[index]
        end = starts[index + 1] if index + 1 < len(starts) else len(text)
        if end < start or end > len(text):
            raise MarkupParseError(
                f"Token positions are not increasing at offset {start}."
            )
        if end == start:
            if kind != "data":
                raise MarkupParseError(f"Empty {kind} token at offset {start}.")
            continue
        sliced.append((kind, tag, text[start:end]))
    return sliced


def parse_markup(text: str) -> MarkupNode:
    """Parse markup into a tree that serialises back to ``text`` exactly.

    Raises ``MarkupParseError`` for truncated markup such as ``<p>x<b``,
    which the tokenizer would otherwise flush as ordinary text.
    """

    recorder = _TokenRecorder()
    try:
        recorder.feed(text)
        recorder.close()
    except Exception as exc:  # html.parser signals malformed input in several ways
        raise MarkupParseError(f"Markup could not be tokenised: {exc}") from exc

    root = MarkupNode(kind="root")
    stack: List[MarkupNode] = [root]

    for kind, tag, raw in _slice_tokens(text, recorder.tokens):
        parent = stack[-1]
        if kind == "data":
            inside_raw_text = (parent.tag or "").lower() in RAW_TEXT_ELEMENTS
            if not inside_raw_text and INCOMPLETE_TAG_PATTERN.search(raw):
                raise MarkupParseError(f"Incomplete markup in {raw[:40]!r}.")
            if parent.children and parent.children[-1].kind == "text":
                parent.children[-1].text += raw
            else:
                parent.children.append(MarkupNode(kind="text", text=raw))
        elif kind == "start":
            node = MarkupNode(kind="element", tag=tag, opening=raw)
            parent.children.append(node)
            if tag not in VOID_ELEMENTS:
                stack.append(node)
        elif kind == "startend":
            parent.children.append(MarkupNode(kind="element", tag=tag, opening=raw))
        elif kind == "end":
            depth = None
            for position in range(len(stack) - 1, 0, -1):
                if stack[position].tag == tag:
                    depth = position
                    break
            if depth is None:
                # Stray closing tag: keep it verbatim.
                parent.children.append(MarkupNode(kind="raw", text=raw))
            else:
                stack[depth].closing = raw
                del stack[depth:]
        else:
            parent.children.append(MarkupNode(kind="raw", text=raw))

    if serialize(root) != text:
        raise MarkupParseError("Markup tree does not reproduce its source.")
    return root


def iter_text_nodes(root: MarkupNode) -> Iterator[MarkupNode]:
    """Yield translatable text nodes in document order.

    Uses an explicit stack; text inside ``script`` and ``style`` is skipped.
    """

    stack: List[Tuple[MarkupNode, bool]] = [(root, False)]
    while stack:
        node, inside_raw = stack.pop()
        if node.kind == "text":
            if not inside_raw:
                yield node
            continue
        if node.kind == "raw":
            continue
        child_raw = inside_raw or (node.tag or "").lower() in RAW_TEXT_ELEMENTS
        for child in reversed(node.children):
            stack.append((child, child_raw))


def serialize(root: MarkupNode) -> str:
    """Render a tree back to markup without recursion."""

    parts: List[str] = []
    stack: List[Tuple[MarkupNode, bool]] = [(root, False)]
    while stack:
        node, closing = stack.pop()
        if closing:
            parts.append(node.closing)
            continue
        if node.kind in ("text", "raw"):
            parts.append(node.text)
            continue
        parts.append(node.opening)
        stack.append((node, True))
        for child in reversed(node.children):
            stack.append((child, False))
    return "".join(parts)
