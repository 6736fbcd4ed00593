"""
Text-Pattern Extraction  —  Readable Text from Raw PDF Bytes
════════════════════════════════════════════════════════════

No PDF parser is involved. The raw file is decoded byte-for-byte (latin-1,
so every byte maps to exactly one character) and four syntactic heuristics
are tried in order:

  1. text-object     literal strings shown by Tj, strings inside TJ arrays,
                     and any other literal string inside a BT … ET block
  2. marker          the same literal/array scan, but only inside BT … ET
                     blocks and only for tokens that contain a letter
  3. stream          content between `stream` / `endstream`; literal strings
                     first, otherwise the printable residue of the stream
  4. readable-ascii  whole-file token filter, a last-resort noise pass

Each heuristic joins its matches with single spaces and collapses
whitespace. The first result longer than MIN_PATTERN_CHARS wins; when none
does, NoUsableTextError is raised.

Compressed (FlateDecode) content streams carry no literal syntax and fall
through to the readable-ascii pass, which usually yields noise that the
quality classifier then rejects.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from caredocs.schemas.documents import ExtractionMethod

logger = logging.getLogger(__name__)

# A heuristic must produce strictly more than this many characters
MIN_PATTERN_CHARS = 100


class NoUsableTextError(Exception):
    """Every pattern heuristic came back empty or too short."""


@dataclass
class PatternExtraction:
    text:   str
    method: ExtractionMethod


# ---------------------------------------------------------------------------
# Regexes
# ---------------------------------------------------------------------------

# Literal string, honouring backslash escapes: (Hello \(world\))
_LITERAL        = r"\(([^)\\]*(?:\\.[^)\\]*)*)\)"
_LITERAL_RE     = re.compile(_LITERAL)
_TJ_STRING_RE   = re.compile(_LITERAL + r"\s*Tj", re.IGNORECASE)
_TJ_ARRAY_RE    = re.compile(r"\[([^\]]*?)\]\s*TJ", re.IGNORECASE)
_ARRAY_ITEM_RE  = re.compile(r"\(([^)]+)\)")
_TEXT_BLOCK_RE  = re.compile(r"BT([\s\S]*?)ET", re.IGNORECASE)

_STREAM_RE         = re.compile(r"stream[\r\n]([\s\S]*?)[\r\n]endstream", re.IGNORECASE)
_STREAM_LITERAL_RE = re.compile(r"\(([^)\\]+(?:\\.[^)\\]*)*)\)")

_ESCAPE_RE      = re.compile(r"\\([0-7]{3}|.)", re.DOTALL)
_NON_PRINTABLE  = re.compile(r"[\x00-\x08\x0E-\x1F\x7F-\xFF]")
_WHITESPACE     = re.compile(r"\s+")
_LETTER         = re.compile(r"[a-zA-Z]")
_NUMERIC_TOKEN  = re.compile(r"^[\d.]+$")

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "(": "(",
    ")": ")",
    "\\": "\\",
}

# Tokens that are PDF object structure rather than content
_STRUCTURAL_KEYWORDS = ("obj", "endobj")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def unescape_pdf_string(raw: str) -> str:
    """
    Decode backslash escapes inside a PDF literal string, then collapse
    whitespace.

    \\n \\r \\t \\b \\f \\( \\) \\\\ map to their characters and \\ddd (three
    octal digits) maps to chr(int(ddd, 8)). Any other escaped character is
    left as written.
    """
    if not raw:
        return ""

    def _replace(match: re.Match[str]) -> str:
        token = match.group(1)
        if len(token) == 3:
            return chr(int(token, 8))
        return _SIMPLE_ESCAPES.get(token, match.group(0))

    return collapse_whitespace(_ESCAPE_RE.sub(_replace, raw))


def _has_letter(text: str) -> bool:
    return bool(_LETTER.search(text))


def _array_strings(array_body: str) -> list[str]:
    """Literal strings inside a TJ array body, kerning numbers dropped."""
    found = []
    for item in _ARRAY_ITEM_RE.finditer(array_body):
        clean = unescape_pdf_string(item.group(1))
        if len(clean) > 1:
            found.append(clean)
    return found


def _join(chunks: list[str]) -> str:
    return collapse_whitespace(" ".join(chunks))


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------

def extract_text_objects(pdf_text: str) -> str:
    chunks: list[str] = []
    seen_spans: set[int] = set()

    for match in _TJ_STRING_RE.finditer(pdf_text):
        seen_spans.add(match.start())
        clean = unescape_pdf_string(match.group(1))
        if len(clean) > 2:
            chunks.append(clean)

    for match in _TJ_ARRAY_RE.finditer(pdf_text):
        chunks.extend(_array_strings(match.group(1)))

    # Remaining literal strings inside text blocks (Td/' and " operators etc.)
    for block in _TEXT_BLOCK_RE.finditer(pdf_text):
        offset = block.start(1)
        body = block.group(1)
        arrays = [(arr.start(), arr.end()) for arr in _TJ_ARRAY_RE.finditer(body)]
        for literal in _LITERAL_RE.finditer(body):
            absolute = offset + literal.start()
            if absolute in seen_spans or _inside(arrays, literal.start()):
                continue
            seen_spans.add(absolute)
            clean = unescape_pdf_string(literal.group(1))
            if len(clean) > 2:
                chunks.append(clean)

    return _join(chunks)


def _inside(spans: list[tuple[int, int]], position: int) -> bool:
    return any(start <= position < end for start, end in spans)


def extract_between_markers(pdf_text: str) -> str:
    chunks: list[str] = []

    for block in _TEXT_BLOCK_RE.finditer(pdf_text):
        body = block.group(1)

        for literal in _LITERAL_RE.finditer(body):
            clean = unescape_pdf_string(literal.group(1))
            if len(clean) > 1 and _has_letter(clean):
                chunks.append(clean)

        for array in _TJ_ARRAY_RE.finditer(body):
            chunks.extend(_array_strings(array.group(1)))

    return _join(chunks)


def _clean_stream_literal(raw: str) -> str:
    return (
        raw.replace("\\n", "\n")
           .replace("\\r", "\r")
           .replace("\\t", "\t")
    )


def extract_stream_objects(pdf_text: str) -> str:
    chunks: list[str] = []

    for stream in _STREAM_RE.finditer(pdf_text):
        content = stream.group(1)

        literals = []
        for literal in _STREAM_LITERAL_RE.finditer(content):
            clean = re.sub(r"\\(.)", r"\1", _clean_stream_literal(literal.group(1)))
            if len(clean) > 2 and _has_letter(clean):
                literals.append(clean)

        if literals:
            chunks.extend(literals)
            continue

        residue = collapse_whitespace(_NON_PRINTABLE.sub(" ", content))
        if len(residue) > 20 and _has_letter(residue):
            chunks.append(residue)

    return _join(chunks)


def _looks_like_word(token: str) -> bool:
    return (
        len(token) >= 2
        and _has_letter(token)
        and not _NUMERIC_TOKEN.match(token)
        and not any(keyword in token for keyword in _STRUCTURAL_KEYWORDS)
    )


def extract_readable_ascii(pdf_text: str) -> str:
    tokens = _NON_PRINTABLE.sub(" ", pdf_text).split()
    return _join([token for token in tokens if _looks_like_word(token)])


# Ordered: first result over MIN_PATTERN_CHARS wins
HEURISTICS: tuple[tuple[ExtractionMethod, Callable[[str], str]], ...] = (
    (ExtractionMethod.PATTERN_TEXT_OBJECT,    extract_text_objects),
    (ExtractionMethod.PATTERN_MARKER,         extract_between_markers),
    (ExtractionMethod.PATTERN_STREAM,         extract_stream_objects),
    (ExtractionMethod.PATTERN_READABLE_ASCII, extract_readable_ascii),
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def extract_pdf_text(
    pdf_bytes: bytes,
    min_chars: int = MIN_PATTERN_CHARS,
) -> PatternExtraction:
    """
    Run the heuristics in order and return the first long-enough result.

    Raises:
        NoUsableTextError: no heuristic produced more than min_chars characters.
    """
    pdf_text = pdf_bytes.decode("latin-1")

    for method, heuristic in HEURISTICS:
        try:
            text = heuristic(pdf_text)
        except Exception as exc:
            logger.warning("Pattern heuristic failed | method=%s error=%s", method.value, exc)
            continue

        logger.debug("Pattern heuristic | method=%s chars=%d", method.value, len(text))
        if len(text) > min_chars:
            logger.info("Pattern extraction succeeded | method=%s chars=%d", method.value, len(text))
            return PatternExtraction(text=text, method=method)

    raise NoUsableTextError("All PDF extraction strategies failed")
