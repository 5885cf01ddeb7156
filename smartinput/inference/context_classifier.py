"""
Context Classifier — maps a (document, offset) pair to the kind of text
region the caret sits in and the input mode that region suggests.

Regions (first match wins):
  COMMENT         — inside a line or block comment
  DOCUMENTATION   — a comment that is also doc-shaped (refinement of COMMENT)
  STRING_LITERAL  — inside a string / char / template literal
  CODE            — anywhere else in the syntax tree
  UNDETERMINED    — nothing found at the offset, or the tree walk failed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..errors import ClassificationError
from .syntax import (
    COMMENT_KINDS,
    LITERAL_KINDS,
    NodeKind,
    SyntaxElement,
    SyntaxTree,
    strip_literal_delimiters,
)

logger = logging.getLogger(__name__)


class InputMode(str, Enum):
    LATIN = "latin"
    NATIVE = "native"
    UNDETERMINED = "undetermined"

    @classmethod
    def parse(cls, value: str | None) -> "InputMode":
        text = (value or "").strip().lower()
        text = {"english": "latin", "en": "latin", "chinese": "native", "zh": "native"}.get(text, text)
        for mode in cls:
            if mode.value == text:
                return mode
        return cls.UNDETERMINED

    def toggled(self) -> "InputMode":
        if self == InputMode.LATIN:
            return InputMode.NATIVE
        return InputMode.LATIN


class RegionKind(str, Enum):
    CODE = "code"
    COMMENT = "comment"
    STRING_LITERAL = "string_literal"
    DOCUMENTATION = "documentation"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True)
class ContextClassification:
    kind: RegionKind
    confidence: float = 1.0          # advisory; not used for gating
    suggested_mode: InputMode = InputMode.UNDETERMINED
    description: str = ""

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= 0.8

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence < 0.5


UNDETERMINED_CLASSIFICATION = ContextClassification(
    RegionKind.UNDETERMINED, 0.0, InputMode.UNDETERMINED, "No element found"
)

_CJK_RANGES = (
    (0x4E00, 0x9FFF),      # CJK Unified Ideographs
    (0x3400, 0x4DBF),      # Extension A
    (0x20000, 0x2A6DF),    # Extension B
)
_LATIN_SYMBOLS = frozenset(" !@#$%^&*()_+-=[]{}|;':\",./<>?")
_DOC_MARKERS = ("/**", "/*!", "///", "//!")
_DOC_TAGS = ("@param", "@return", "@author", "@since", ":param", ":return:")


def contains_cjk(text: str) -> bool:
    return any(lo <= ord(ch) <= hi for ch in text for lo, hi in _CJK_RANGES)


def is_latin_only(text: str) -> bool:
    """True when every char is an ASCII letter/digit or one of the common symbols."""
    return all((ch.isascii() and ch.isalnum()) or ch in _LATIN_SYMBOLS for ch in text)


def is_documentation_comment(kind: NodeKind, text: str) -> bool:
    if kind == NodeKind.DOCSTRING:
        return True
    if text.startswith(_DOC_MARKERS) and not text.startswith("/**/"):
        return True
    return any(tag in text for tag in _DOC_TAGS)


class ContextClassifier:
    """
    Rule-based classifier over a SyntaxTree. Read-only with respect to the
    document, and never raises: any failure becomes an UNDETERMINED result.
    """

    def classify(self, document: SyntaxTree, offset: int) -> ContextClassification:
        try:
            return self._classify_at(document, offset)
        except ClassificationError as e:
            logger.warning("Error analysing context at offset %d: %s", offset, e)
            return ContextClassification(
                RegionKind.UNDETERMINED, 0.0, InputMode.UNDETERMINED, f"Analysis error: {e}"
            )

    def _classify_at(self, document: SyntaxTree, offset: int) -> ContextClassification:
        """Walk the tree at *offset*; any provider failure becomes a ClassificationError."""
        try:
            element = document.find_element_at(offset)
            if element is None:
                logger.debug("No syntax element at offset %d", offset)
                return UNDETERMINED_CLASSIFICATION
            return self._classify_element(document, element)
        except ClassificationError:
            raise
        except Exception as e:
            raise ClassificationError(f"{type(e).__name__}: {e}") from e

    # ------------------------------------------------------------------
    # Region rules
    # ------------------------------------------------------------------

    def _classify_element(self, document: SyntaxTree, element: SyntaxElement) -> ContextClassification:
        comment = document.nearest_ancestor_of_kind(element, COMMENT_KINDS)
        if comment is not None:
            return self._classify_comment(document, element, comment)

        literal = document.nearest_ancestor_of_kind(element, LITERAL_KINDS)
        if literal is not None:
            content = strip_literal_delimiters(document.text_of(literal))
            return self.classify_string(content)

        return ContextClassification(
            RegionKind.CODE, 0.8, InputMode.LATIN, _code_detail(element)
        )

    def _classify_comment(
        self, document: SyntaxTree, element: SyntaxElement, comment: SyntaxElement
    ) -> ContextClassification:
        text = document.text_of(comment)
        if is_documentation_comment(comment.kind, text):
            confidence = 1.0 if comment is element else 0.9
            return ContextClassification(
                RegionKind.DOCUMENTATION, confidence, InputMode.NATIVE,
                f"In documentation comment: {text[:50]}",
            )
        return ContextClassification(
            RegionKind.COMMENT, 1.0, InputMode.NATIVE,
            f"In {_comment_style(comment.kind, text)}: {text[:50]}",
        )

    def classify_string(self, content: str) -> ContextClassification:
        """Classify the delimiter-stripped content of a string literal."""
        if not content:
            confidence, mode = 0.5, InputMode.NATIVE
        elif contains_cjk(content):
            # any ideograph is decisive, however short the literal
            confidence, mode = 1.0, InputMode.NATIVE
        else:
            if is_latin_only(content):
                confidence, mode = 0.9, InputMode.LATIN
            else:
                confidence, mode = 0.7, InputMode.NATIVE   # mixed content defaults to native
            if len(content) < 5:
                confidence = 0.6
        return ContextClassification(
            RegionKind.STRING_LITERAL, confidence, mode, f"In string literal: {content[:30]}"
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _comment_style(kind: NodeKind, text: str) -> str:
    if kind == NodeKind.LINE_COMMENT or text.startswith(("//", "#")):
        return "line_comment"
    if kind == NodeKind.BLOCK_COMMENT or text.startswith("/*"):
        return "block_comment"
    return "comment"


def _code_detail(element: SyntaxElement) -> str:
    return {
        NodeKind.IDENTIFIER: "Identifier",
        NodeKind.KEYWORD: "Keyword",
        NodeKind.NUMBER: "Number",
        NodeKind.OPERATOR: "Operator",
    }.get(element.kind, f"Code element: {element.kind.value}")
