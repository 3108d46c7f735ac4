"""Text chunking: fixed character windows and layout paragraph grouping.

Two strategies, selected by source format:

1. **Fixed windows with overlap** (DOCX).  The extracted document string is
   cut into windows of ``chunk_size`` characters that share
   ``chunk_overlap`` characters with their predecessor.  A window that
   would end mid-word is pulled back to the last ``.`` or newline when
   that break lies in the final 30% of the window, so chunks tend to end
   on a sentence or line.

2. **Paragraph grouping** (PDF).  Page text is split into lines, lines
   longer than the token budget are broken at sentence boundaries (then at
   word boundaries), and lines are packed greedily into paragraphs of at
   most ``paragraph_max_tokens`` approximate tokens.

Both are pure functions of their input and settings: the same text always
produces the same ordered list of chunk texts.
"""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger(logger_name=__name__)

# A mid-word window end snaps back to a "." or "\n" only past this fraction
# of the window length.
_SNAP_THRESHOLD = 0.7

# Common abbreviations that should NOT trigger a sentence split.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "No",
        "Fig",
        "vs",
        "etc",
        "approx",
        "dept",
        "inc",
        "ltd",
        "co",
        "e.g",
        "i.e",
    }
)


def count_tokens(text: str) -> int:
    """Approximate token count: four characters per token."""
    return len(text) // 4


class TextChunker:
    """Splits extracted text into chunk-sized pieces.

    Parameters
    ----------
    chunk_size:
        Fixed-window size in characters (default 1000).
    chunk_overlap:
        Characters shared by consecutive fixed windows (default 200).
        Values at or above ``chunk_size`` are allowed; the window then
        simply advances without overlap.
    paragraph_max_tokens:
        Token budget per paragraph for :meth:`split_paragraphs` (default 200).
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        paragraph_max_tokens: int = 200,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0:
            raise ValueError(f"chunk_overlap must not be negative, got {chunk_overlap}")
        if paragraph_max_tokens <= 0:
            raise ValueError(
                f"paragraph_max_tokens must be positive, got {paragraph_max_tokens}"
            )
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._paragraph_max_tokens = paragraph_max_tokens

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def chunk_overlap(self) -> int:
        return self._chunk_overlap

    # ------------------------------------------------------------------
    # Fixed windows
    # ------------------------------------------------------------------

    def chunk_windows(self, content: str) -> list[str]:
        """Cut *content* into overlapping, trimmed, non-empty windows.

        The caller numbers the returned windows; window ``i`` becomes page
        ``i + 1``.
        """
        length = len(content)
        windows: list[str] = []
        offset = 0

        while offset < length:
            end = min(offset + self._chunk_size, length)

            if end < length and not content[end].isspace():
                window = content[offset:end]
                cut = max(window.rfind("."), window.rfind("\n"))
                if cut > len(window) * _SNAP_THRESHOLD:
                    end = offset + cut + 1

            text = content[offset:end].strip()
            if text:
                windows.append(text)

            if end >= length:
                break

            # Never step backwards or stand still, whatever the overlap.
            next_offset = end - self._chunk_overlap
            offset = next_offset if next_offset > offset else end

        logger.debug(
            "fixed_window_chunking_complete",
            content_length=length,
            num_chunks=len(windows),
        )
        return windows

    # ------------------------------------------------------------------
    # Paragraph grouping
    # ------------------------------------------------------------------

    def split_paragraphs(self, text: str, max_tokens: int | None = None) -> list[str]:
        """Group the lines of *text* into paragraphs of at most *max_tokens*.

        A single word longer than the budget is kept whole, so that
        paragraph may exceed it.
        """
        budget = max_tokens or self._paragraph_max_tokens

        lines: list[str] = []
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if line:
                lines.extend(self._split_long_line(line, budget))

        return self._pack(lines, budget, "\n")

    def _split_long_line(self, line: str, budget: int) -> list[str]:
        if count_tokens(line) <= budget:
            return [line]

        pieces: list[str] = []
        for sentence in self._split_sentences(line):
            if count_tokens(sentence) <= budget:
                pieces.append(sentence)
            else:
                pieces.extend(self._pack(sentence.split(), budget, " "))
        return self._pack(pieces, budget, " ")

    @staticmethod
    def _pack(pieces: list[str], budget: int, separator: str) -> list[str]:
        """Greedily join consecutive *pieces* while the total stays within *budget*."""
        packed: list[str] = []
        current: list[str] = []
        current_tokens = 0

        for piece in pieces:
            piece_tokens = count_tokens(piece)
            if current and current_tokens + piece_tokens > budget:
                packed.append(separator.join(current))
                current = []
                current_tokens = 0
            current.append(piece)
            current_tokens += piece_tokens

        if current:
            packed.append(separator.join(current))
        return packed

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split *text* at sentence boundaries while respecting abbreviations.

        Periods after known abbreviations are masked with ``\\x00`` (same
        length, so indices stay aligned with the original text) before
        matching ``.``, ``!`` or ``?`` followed by whitespace or the end.
        """
        masked = text
        for abbr in _ABBREVIATIONS:
            masked = masked.replace(f"{abbr}.", f"{abbr}\x00")

        sentences: list[str] = []
        last = 0
        for match in re.finditer(r"[.!?](?:\s|$)", masked):
            end = match.end()
            sentence = text[last:end].strip()
            if sentence:
                sentences.append(sentence)
            last = end

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)

        return sentences if sentences else [text]
