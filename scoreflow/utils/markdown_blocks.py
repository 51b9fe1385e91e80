"""Split a host document into prose and score blocks.

The viewer displays Markdown-like documents.  Fenced code blocks whose
info string is ``verovio`` are score blocks; everything else, including
other fenced blocks, is kept as text::

    Some prose.

    ```verovio
    scores/bach.mei
    scale: 40
    ```
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

#: Info string that marks a fenced block as a score block.
SCORE_LANGUAGE = "verovio"

_RE_FENCE_OPEN = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})\s*(?P<info>[^`]*?)\s*$")


@dataclass(frozen=True)
class Segment:
    """A run of prose (``kind == "text"``) or the body of a score block."""
    kind: str
    content: str
    line: int


def split_document(text: str, language: str = SCORE_LANGUAGE) -> List[Segment]:
    """Return the document as an ordered list of text and score segments.

    An unterminated score fence runs to the end of the document, as in
    CommonMark.  Blank text segments are dropped.
    """
    segments: List[Segment] = []
    buffer: List[str] = []
    buffer_start = 1
    lines = text.splitlines()
    i = 0

    def flush_text(next_line: int) -> None:
        nonlocal buffer, buffer_start
        content = "\n".join(buffer).strip("\n")
        if content.strip():
            segments.append(Segment("text", content, buffer_start))
        buffer = []
        buffer_start = next_line

    while i < len(lines):
        match = _RE_FENCE_OPEN.match(lines[i])
        if match is None:
            buffer.append(lines[i])
            i += 1
            continue
        fence = match.group("fence")
        info = match.group("info").split()
        body_start = i + 1
        j = body_start
        while j < len(lines) and not re.match(rf"^ {{0,3}}{re.escape(fence[0])}{{{len(fence)},}}\s*$", lines[j]):
            j += 1
        if info and info[0] == language:
            flush_text(i + 1)
            segments.append(Segment("score", "\n".join(lines[body_start:j]), body_start + 1))
            buffer_start = j + 2
        else:
            buffer.extend(lines[i:j + 1])
        i = j + 1
    flush_text(len(lines) + 1)
    return segments


__all__ = ["Segment", "split_document", "SCORE_LANGUAGE"]
