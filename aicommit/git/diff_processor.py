"""Diff Processor - Turn a raw staged diff into the diff the providers see.

Noise files (lock files, build output) are dropped, the remaining files are
ordered source-first, binary hunks are collapsed to one line and very long
lines are clipped. Nothing is truncated by size here: oversized diffs are
split into chunks by the provider layer.
"""

from dataclasses import dataclass, field
from enum import IntEnum
import re

from aicommit.diff import TokenEstimator
from aicommit.git.analyzer import FileChange, StagedChanges


class Priority(IntEnum):
    """File priority, lower goes first in the prompt."""
    SOURCE = 1
    TEST = 2
    CONFIG = 3
    DOCS = 4
    NOISE = 99


PRIORITY_LABELS = {
    Priority.SOURCE: "Source",
    Priority.TEST: "Tests",
    Priority.CONFIG: "Config",
    Priority.DOCS: "Docs",
}


@dataclass
class ProcessedDiff:
    """LLM-ready representation of staged changes."""
    summary: str
    diff: str
    total_files: int = 0
    included_files: int = 0
    filtered_files: int = 0
    file_details: list[tuple[str, int, int]] = field(default_factory=list)
    estimator: TokenEstimator = field(default_factory=TokenEstimator, repr=False)

    @property
    def estimated_tokens(self) -> int:
        return self.estimator.estimate(self.summary) + self.estimator.estimate(self.diff)

    @property
    def is_empty(self) -> bool:
        return not self.diff.strip()


@dataclass
class ProcessorConfig:
    """Tunable settings for diff processing."""
    max_line_length: int = 500


class DiffProcessor:
    """Transforms raw git diff into LLM-friendly context."""

    NOISE_PATTERNS: list[str] = [
        r'package-lock\.json$', r'yarn\.lock$', r'pnpm-lock\.yaml$',
        r'poetry\.lock$', r'Cargo\.lock$', r'Gemfile\.lock$', r'composer\.lock$',
        r'uv\.lock$', r'go\.sum$',
        r'\.min\.js$', r'\.min\.css$', r'\.map$', r'\.pyc$', r'__pycache__',
        r'\.class$', r'(^|/)dist/', r'(^|/)build/', r'\.egg-info/',
        r'\.idea/', r'\.vscode/', r'\.DS_Store$',
        r'node_modules/', r'vendor/', r'venv/', r'\.venv/',
    ]

    TEST_PATTERNS: list[str] = [
        r'tests?/', r'specs?/', r'__tests__/',
        r'\.test\.', r'\.spec\.', r'_test\.', r'_spec\.', r'(^|/)test_[^/]+$',
        r'Tests?\.java$',
    ]

    CONFIG_PATTERNS: list[str] = [
        r'\.json$', r'\.ya?ml$', r'\.toml$', r'\.ini$', r'\.cfg$', r'\.env',
        r'\.config\.', r'config/', r'settings/', r'\.aicommitrc$',
        r'Makefile$', r'Dockerfile$', r'docker-compose',
    ]

    DOCS_PATTERNS: list[str] = [
        r'\.md$', r'\.rst$', r'\.txt$', r'docs/',
        r'README', r'CHANGELOG', r'LICENSE',
    ]

    _FILE_HEADER_RE = re.compile(r'^diff --git a/(.+?) b/')
    _BINARY_RE = re.compile(r'^(Binary files .* differ|GIT binary patch)$')

    def __init__(self, config: ProcessorConfig | None = None, estimator: TokenEstimator | None = None):
        self.config = config or ProcessorConfig()
        self.estimator = estimator or TokenEstimator()
        self._noise_re = [re.compile(p, re.IGNORECASE) for p in self.NOISE_PATTERNS]
        self._test_re = [re.compile(p, re.IGNORECASE) for p in self.TEST_PATTERNS]
        self._config_re = [re.compile(p, re.IGNORECASE) for p in self.CONFIG_PATTERNS]
        self._docs_re = [re.compile(p, re.IGNORECASE) for p in self.DOCS_PATTERNS]

    def process(self, changes: StagedChanges) -> ProcessedDiff:
        """Main entry point: raw changes -> LLM-ready context."""
        classified = [(f, self.get_priority(f.path)) for f in changes.files]
        kept = [(f, p) for f, p in classified if p != Priority.NOISE]
        noise_count = len(classified) - len(kept)

        kept.sort(key=lambda x: (x[1], -x[0].total_changes))

        sections = split_diff_by_file(changes.diff)
        parts = [self._normalize(sections[f.path]) for f, _ in kept if f.path in sections]

        return ProcessedDiff(
            summary=self._build_summary(kept, noise_count),
            diff="\n".join(parts),
            total_files=len(changes.files),
            included_files=len(parts),
            filtered_files=noise_count,
            file_details=[(f.path, f.additions, f.deletions) for f, _ in kept],
            estimator=self.estimator,
        )

    def get_priority(self, path: str) -> Priority:
        if any(p.search(path) for p in self._noise_re):
            return Priority.NOISE
        if any(p.search(path) for p in self._test_re):
            return Priority.TEST
        if any(p.search(path) for p in self._docs_re):
            return Priority.DOCS
        if any(p.search(path) for p in self._config_re):
            return Priority.CONFIG
        return Priority.SOURCE

    def _build_summary(self, files: list[tuple[FileChange, Priority]], noise_count: int) -> str:
        lines = ["FILES CHANGED:"]
        current_priority = None

        for file, priority in files:
            if priority != current_priority:
                current_priority = priority
                lines.append(f"\n[{PRIORITY_LABELS.get(priority, 'Other')}]")
            suffix = " (binary)" if file.binary else f" (+{file.additions} -{file.deletions})"
            lines.append(f"  {file.path}{suffix}")

        if noise_count > 0:
            lines.append(f"\n[Filtered: {noise_count} files (lock files, generated code)]")

        return "\n".join(lines)

    def _normalize(self, section: str) -> str:
        limit = self.config.max_line_length
        lines = []
        for line in section.split('\n'):
            if self._BINARY_RE.match(line):
                lines.append("[binary file changed]")
                # Drop the base85 payload that follows a binary patch
                if line == "GIT binary patch":
                    break
                continue
            if limit and len(line) > limit:
                line = f"{line[:limit]} ... [{len(line) - limit} chars clipped]"
            lines.append(line)
        return '\n'.join(lines).rstrip('\n')


def split_diff_by_file(diff: str) -> dict[str, str]:
    """Map each path to its 'diff --git' section."""
    files = {}
    current_file = None
    current_lines: list[str] = []

    for line in diff.split('\n'):
        match = DiffProcessor._FILE_HEADER_RE.match(line)
        if match:
            if current_file:
                files[current_file] = '\n'.join(current_lines)
            current_file = match.group(1)
            current_lines = [line]
        elif current_file:
            current_lines.append(line)

    if current_file:
        files[current_file] = '\n'.join(current_lines)

    return files
