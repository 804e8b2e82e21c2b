"""Git Analyzer - Read staged changes from git. Never writes to the repo."""

import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# PROJ-123 style ticket ids in branch names
TICKET_RE = re.compile(r'\b([A-Z][A-Z0-9]+-\d+)\b')


@dataclass
class FileChange:
    """One staged file with its numstat counts."""
    path: str
    additions: int
    deletions: int
    binary: bool = False

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions

    @property
    def directory(self) -> str:
        """Top-level directory, used as a scope hint. src/lib/app are skipped."""
        parts = Path(self.path).parts
        if len(parts) > 2 and parts[0] in ('src', 'lib', 'app'):
            return parts[1]
        return parts[0] if parts else ''


@dataclass
class StagedChanges:
    """Complete picture of what's staged for commit."""
    files: list[FileChange] = field(default_factory=list)
    diff: str = ""
    branch: str | None = None

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_additions(self) -> int:
        return sum(f.additions for f in self.files)

    @property
    def total_deletions(self) -> int:
        return sum(f.deletions for f in self.files)

    @property
    def is_empty(self) -> bool:
        return not self.files

    @property
    def ticket(self) -> str | None:
        """Ticket id found in the branch name, e.g. feature/PROJ-42-login."""
        if not self.branch:
            return None
        match = TICKET_RE.search(self.branch.upper())
        return match.group(1) if match else None


class GitError(Exception):
    """Raised when git operations fail."""
    pass


class GitAnalyzer:
    """Extracts staged changes from git."""

    def __init__(self, cwd: str | Path | None = None):
        self.cwd = cwd
        self._verify_git_available()
        self._verify_in_repo()

    def _run_git(self, *args: str) -> str:
        try:
            result = subprocess.run(
                ['git', *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=True,
                encoding='utf-8',
                errors='replace'
            )
        except subprocess.CalledProcessError as e:
            raise GitError(f"Git command failed: git {' '.join(args)}\n{e.stderr}") from e
        except FileNotFoundError as e:
            raise GitError("Git is not installed or not in PATH") from e
        return result.stdout

    def _verify_git_available(self) -> None:
        self._run_git('--version')

    def _verify_in_repo(self) -> None:
        try:
            self._run_git('rev-parse', '--git-dir')
        except GitError as e:
            raise GitError("Not inside a git repository") from e

    def get_staged_changes(self) -> StagedChanges:
        return StagedChanges(
            files=self.get_staged_files(),
            diff=self.get_staged_diff(),
            branch=self.get_current_branch(),
        )

    def get_staged_files(self) -> list[FileChange]:
        """Parse 'git diff --staged --numstat' output."""
        output = self._run_git('diff', '--staged', '--numstat')
        return parse_numstat(output)

    def get_staged_diff(self) -> str:
        return self._run_git('diff', '--staged')

    def get_current_branch(self) -> str | None:
        """Branch name, or None when detached or before the first commit."""
        try:
            branch = self._run_git('rev-parse', '--abbrev-ref', 'HEAD').strip()
        except GitError:
            logger.debug("Could not determine current branch", exc_info=True)
            return None
        return branch if branch and branch != 'HEAD' else None

    def get_recent_subjects(self, limit: int = 10) -> list[str]:
        """Subjects of the last commits, newest first. Empty in a fresh repo."""
        try:
            output = self._run_git('log', f'-{limit}', '--pretty=format:%s')
        except GitError:
            return []
        return [line for line in output.split('\n') if line.strip()]


def parse_numstat(output: str) -> list[FileChange]:
    files = []
    for line in output.strip().split('\n'):
        parts = line.split('\t')
        if len(parts) < 3:
            continue
        binary = parts[0] == '-' and parts[1] == '-'
        additions = int(parts[0]) if parts[0] != '-' else 0
        deletions = int(parts[1]) if parts[1] != '-' else 0
        files.append(FileChange(path=parts[2], additions=additions, deletions=deletions, binary=binary))
    return files
