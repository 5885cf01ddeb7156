"""
Syntax provider — the narrow view of a host document the classifier needs.

A host editor that owns a real parse tree implements SyntaxTree directly.
Editors that only stream plain text (the HTTP API) get SourceDocument, a
lexical tokenizer good enough to tell comments, docstrings and string
literals apart from code:

  C family    //…  /* … */  "…"  '…'  `…`  \"\"\"…\"\"\"
  Hash family #…   '…'  "…"  '''…'''  \"\"\"…\"\"\"  (with r/b/f/u prefixes)
"""

from __future__ import annotations

import keyword
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional


class NodeKind(str, Enum):
    FILE = "file"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    DOCSTRING = "docstring"
    STRING = "string"
    CHAR = "char"
    TEMPLATE_STRING = "template_string"
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    NUMBER = "number"
    OPERATOR = "operator"
    WHITESPACE = "whitespace"


COMMENT_KINDS = frozenset({NodeKind.LINE_COMMENT, NodeKind.BLOCK_COMMENT, NodeKind.DOCSTRING})
LITERAL_KINDS = frozenset({NodeKind.STRING, NodeKind.CHAR, NodeKind.TEMPLATE_STRING})


@dataclass(frozen=True)
class SyntaxElement:
    kind: NodeKind
    start: int                      # inclusive
    end: int                        # exclusive
    text: str
    parent: Optional["SyntaxElement"] = field(default=None, repr=False, compare=False)

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end


@dataclass(frozen=True)
class CaretPosition:
    line: int                       # 0-based
    column: int                     # 0-based


class SyntaxTree:
    """
    Read-only access to a document's syntax. Implementations must not mutate
    the underlying document from any of these calls.
    """

    def find_element_at(self, offset: int) -> Optional[SyntaxElement]:
        raise NotImplementedError

    def nearest_ancestor_of_kind(
        self,
        element: Optional[SyntaxElement],
        kinds: Iterable[NodeKind],
        strict: bool = False,
    ) -> Optional[SyntaxElement]:
        wanted = frozenset(kinds)
        current = element.parent if (strict and element is not None) else element
        while current is not None:
            if current.kind in wanted:
                return current
            current = current.parent
        return None

    def text_of(self, element: SyntaxElement) -> str:
        return element.text


# ---------------------------------------------------------------------------
# Lexical implementation
# ---------------------------------------------------------------------------

HASH_COMMENT_LANGUAGES = frozenset({
    "python", "py", "ruby", "rb", "shell", "sh", "bash", "zsh", "yaml", "yml",
    "toml", "perl", "r", "makefile", "dockerfile", "powershell", "ps1",
})

_KEYWORDS = frozenset(keyword.kwlist) | frozenset({
    "abstract", "case", "catch", "char", "class", "const", "default", "do",
    "double", "enum", "extends", "final", "float", "fun", "func", "function",
    "go", "implements", "import", "int", "interface", "let", "long", "new",
    "null", "override", "package", "private", "protected", "public", "return",
    "static", "struct", "super", "switch", "this", "throw", "throws", "val",
    "var", "void", "when",
})

_IDENT_RE = re.compile(r"[^\W\d]\w*", re.UNICODE)
_NUMBER_RE = re.compile(r"\d[\w.]*", re.UNICODE)
_SPACE_RE = re.compile(r"\s+", re.UNICODE)
_PY_PREFIX_RE = re.compile(r"(?:[rRbBfFuU]{1,2})(?=['\"])")


class SourceDocument(SyntaxTree):
    """Immutable tokenized snapshot of a source text."""

    def __init__(self, text: str, language: str = "plain"):
        self.text = text
        self.language = (language or "plain").lower()
        self.hash_comments = self.language in HASH_COMMENT_LANGUAGES
        self.root = SyntaxElement(NodeKind.FILE, 0, len(text), text)
        self.tokens: List[SyntaxElement] = list(self._tokenize())
        self._line_starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    # ------------------------------------------------------------------
    # SyntaxTree
    # ------------------------------------------------------------------

    def find_element_at(self, offset: int) -> Optional[SyntaxElement]:
        if not self.text or offset < 0 or offset > len(self.text):
            return None
        # The caret right after the last char of a line comment is still in it.
        if offset > 0:
            previous = self._token_covering(offset - 1)
            if previous is not None and previous.kind == NodeKind.LINE_COMMENT and previous.end == offset:
                return previous
        return self._token_covering(offset)

    def _token_covering(self, offset: int) -> Optional[SyntaxElement]:
        lo, hi = 0, len(self.tokens) - 1
        while lo <= hi:
            mid = (lo + hi) // 2
            tok = self.tokens[mid]
            if offset < tok.start:
                hi = mid - 1
            elif offset >= tok.end:
                lo = mid + 1
            else:
                return tok
        return None

    # ------------------------------------------------------------------
    # Caret helpers
    # ------------------------------------------------------------------

    def logical_offset_of(self, line: int, column: int) -> int:
        """Convert a 0-based (line, column) into an offset, clamping to the document."""
        if not self._line_starts or line < 0:
            return 0
        if line >= len(self._line_starts):
            return len(self.text)
        start = self._line_starts[line]
        line_end = self.text.find("\n", start)
        if line_end == -1:
            line_end = len(self.text)
        return start + max(0, min(column, line_end - start))

    def position_of(self, offset: int) -> CaretPosition:
        offset = max(0, min(offset, len(self.text)))
        line = 0
        for i, start in enumerate(self._line_starts):
            if start > offset:
                break
            line = i
        return CaretPosition(line=line, column=offset - self._line_starts[line])

    # ------------------------------------------------------------------
    # Tokenizer
    # ------------------------------------------------------------------

    def _make(self, kind: NodeKind, start: int, end: int) -> SyntaxElement:
        return SyntaxElement(kind, start, end, self.text[start:end], parent=self.root)

    def _tokenize(self):
        text = self.text
        n = len(text)
        i = 0
        last_significant: Optional[SyntaxElement] = None
        while i < n:
            ch = text[i]
            if ch.isspace():
                end = _SPACE_RE.match(text, i).end()
                yield self._make(NodeKind.WHITESPACE, i, end)
                i = end
                continue

            tok = self._scan_comment(i) or self._scan_literal(i, last_significant)
            if tok is None:
                tok = self._scan_word(i)
            yield tok
            if tok.kind not in (NodeKind.LINE_COMMENT, NodeKind.BLOCK_COMMENT):
                last_significant = tok
            i = tok.end

    def _scan_comment(self, i: int) -> Optional[SyntaxElement]:
        text = self.text
        if self.hash_comments:
            if text[i] == "#":
                return self._make(NodeKind.LINE_COMMENT, i, _line_end(text, i))
            return None
        if text.startswith("//", i):
            return self._make(NodeKind.LINE_COMMENT, i, _line_end(text, i))
        if text.startswith("/*", i):
            close = text.find("*/", i + 2)
            end = len(text) if close == -1 else close + 2
            return self._make(NodeKind.BLOCK_COMMENT, i, end)
        return None

    def _scan_literal(self, i: int, previous: Optional[SyntaxElement]) -> Optional[SyntaxElement]:
        text = self.text
        start = i
        if self.hash_comments:
            m = _PY_PREFIX_RE.match(text, i)
            if m:
                i = m.end()
        if i >= len(text) or text[i] not in "\"'`":
            return None
        quote = text[i]
        if quote == "`" and self.hash_comments:
            return None

        if text.startswith(quote * 3, i) and quote != "`":
            close = text.find(quote * 3, i + 3)
            end = len(text) if close == -1 else close + 3
            kind = NodeKind.STRING
            if self.hash_comments and _is_docstring_position(text, start, previous):
                kind = NodeKind.DOCSTRING
            return self._make(kind, start, end)

        if quote == "`":
            close = text.find("`", i + 1)
            end = len(text) if close == -1 else close + 1
            return self._make(NodeKind.TEMPLATE_STRING, start, end)

        end = _scan_quoted(text, i + 1, quote)
        kind = NodeKind.CHAR if (quote == "'" and not self.hash_comments) else NodeKind.STRING
        return self._make(kind, start, end)

    def _scan_word(self, i: int) -> SyntaxElement:
        text = self.text
        m = _IDENT_RE.match(text, i)
        if m:
            kind = NodeKind.KEYWORD if m.group() in _KEYWORDS else NodeKind.IDENTIFIER
            return self._make(kind, i, m.end())
        m = _NUMBER_RE.match(text, i)
        if m:
            return self._make(NodeKind.NUMBER, i, m.end())
        return self._make(NodeKind.OPERATOR, i, i + 1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _line_end(text: str, i: int) -> int:
    end = text.find("\n", i)
    return len(text) if end == -1 else end


def _scan_quoted(text: str, i: int, quote: str) -> int:
    """Return the end offset of a single-line quoted literal whose body starts at *i*."""
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n":
            return i                 # unterminated: stop at the line break
        i += 1
    return n


def _is_docstring_position(text: str, start: int, previous: Optional[SyntaxElement]) -> bool:
    """A triple-quoted string is a docstring when it opens its own line at module start or after a ':'."""
    line_start = text.rfind("\n", 0, start) + 1
    if text[line_start:start].strip():
        return False
    if previous is None:
        return True
    return previous.kind == NodeKind.OPERATOR and previous.text == ":"


def strip_literal_delimiters(literal: str) -> str:
    """Remove prefixes and quote delimiters from a string literal's source text."""
    body = literal
    m = _PY_PREFIX_RE.match(body)
    if m:
        body = body[m.end():]
    for quote in ('"""', "'''", '"', "'", "`"):
        if body.startswith(quote):
            body = body[len(quote):]
            if len(body) >= len(quote) and body.endswith(quote):
                body = body[: -len(quote)]
            return body
    return literal


