"""Diff Chunker - Split oversized diffs into token-bounded pieces."""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterator

from aicommit.diff.tokens import TokenEstimator

logger = logging.getLogger(__name__)

# Lines that carry file/hunk structure. Always kept verbatim.
HEADER_PREFIXES = ('diff --git', 'index ', '---', '+++', '@@')


def is_header_line(line: str) -> bool:
    return line.startswith(HEADER_PREFIXES)


@dataclass
class DiffChunk:
    """One token-bounded slice of a diff, lines in original order."""
    lines: list[str] = field(default_factory=list)
    estimated_tokens: int = 0

    @property
    def header_lines(self) -> list[str]:
        return [line for line in self.lines if is_header_line(line)]

    @property
    def body_lines(self) -> list[str]:
        return [line for line in self.lines if not is_header_line(line)]

    @property
    def text(self) -> str:
        return '\n'.join(self.lines)


class DiffChunker:
    """Greedy line packer that keeps each chunk under a token budget.

    Budgets below MIN_CHUNK_TOKENS are not subdivided further: the diff is
    returned as one chunk with every header line and as much body as fits.
    """

    MIN_CHUNK_TOKENS = 50

    def __init__(self, estimator: TokenEstimator | None = None):
        self.estimator = estimator or TokenEstimator()

    def chunk(self, diff_text: str, max_tokens_per_chunk: int) -> list[str]:
        return [c.text for c in self.split(diff_text, max_tokens_per_chunk)]

    def split(self, diff_text: str, max_tokens_per_chunk: int) -> list[DiffChunk]:
        if not diff_text:
            raise ValueError("Cannot chunk an empty diff")
        if max_tokens_per_chunk <= 0:
            raise ValueError(f"max_tokens_per_chunk must be positive, got {max_tokens_per_chunk}")

        lines = diff_text.rstrip('\n').split('\n')

        if max_tokens_per_chunk < self.MIN_CHUNK_TOKENS:
            logger.debug("Chunk budget %d below floor %d, truncating",
                         max_tokens_per_chunk, self.MIN_CHUNK_TOKENS)
            return [self._truncated_chunk(lines, max_tokens_per_chunk)]

        chunks: list[DiffChunk] = []
        current: list[str] = []
        current_tokens = 0

        for piece in self._pieces(lines, max_tokens_per_chunk):
            cost = self._line_cost(piece)
            if current and current_tokens + cost > max_tokens_per_chunk:
                chunks.append(self._make_chunk(current))
                current, current_tokens = [], 0
            current.append(piece)
            current_tokens += cost

        if current:
            chunks.append(self._make_chunk(current))

        logger.debug("Split %d lines into %d chunks (budget %d tokens)",
                     len(lines), len(chunks), max_tokens_per_chunk)
        return chunks

    def _line_cost(self, line: str) -> int:
        # Count the joining newline so a chunk's text never outgrows its budget
        return self.estimator.estimate(line + '\n')

    def _pieces(self, lines: list[str], max_tokens: int) -> Iterator[str]:
        """Yield lines, cutting oversized body lines by character count."""
        capacity = max(1, self.estimator.chars_for(max_tokens) - 1)

        for line in lines:
            if self._line_cost(line) <= max_tokens or is_header_line(line):
                yield line
                continue

            count = max(
                math.ceil(self.estimator.estimate(line) / max_tokens),
                math.ceil(len(line) / capacity),
            )
            size = math.ceil(len(line) / count)
            for start in range(0, len(line), size):
                yield line[start:start + size]

    def _truncated_chunk(self, lines: list[str], max_tokens: int) -> DiffChunk:
        budget = self.estimator.chars_for(max_tokens)
        used = 0
        kept = []

        for line in lines:
            if is_header_line(line):
                kept.append(line)
                continue
            room = budget - used
            if room <= 0:
                continue
            piece = line[:room]
            kept.append(piece)
            used += len(piece) + 1

        return self._make_chunk(kept)

    def _make_chunk(self, lines: list[str]) -> DiffChunk:
        chunk = DiffChunk(lines=list(lines))
        chunk.estimated_tokens = self.estimator.estimate(chunk.text)
        return chunk


def chunk_diff(diff_text: str, max_tokens_per_chunk: int,
               estimator: TokenEstimator | None = None) -> list[str]:
    """Convenience wrapper: chunk a diff with a default or given estimator."""
    return DiffChunker(estimator).chunk(diff_text, max_tokens_per_chunk)
