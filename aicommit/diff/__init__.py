"""Diff Sizing Package"""

from aicommit.diff.tokens import TokenEstimator, estimate_tokens, DEFAULT_CHARS_PER_TOKEN, STRICT_CHARS_PER_TOKEN
from aicommit.diff.chunker import DiffChunker, DiffChunk, chunk_diff, is_header_line

__all__ = [
    "TokenEstimator",
    "estimate_tokens",
    "DEFAULT_CHARS_PER_TOKEN",
    "STRICT_CHARS_PER_TOKEN",
    "DiffChunker",
    "DiffChunk",
    "chunk_diff",
    "is_header_line",
]
