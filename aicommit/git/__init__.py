"""Git Operations Package"""

from aicommit.git.analyzer import GitAnalyzer, GitError, FileChange, StagedChanges, parse_numstat
from aicommit.git.diff_processor import DiffProcessor, ProcessedDiff, ProcessorConfig, Priority, split_diff_by_file

__all__ = [
    "GitAnalyzer",
    "GitError",
    "FileChange",
    "StagedChanges",
    "parse_numstat",
    "DiffProcessor",
    "ProcessedDiff",
    "ProcessorConfig",
    "Priority",
    "split_diff_by_file",
]
