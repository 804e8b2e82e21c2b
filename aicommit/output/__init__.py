"""Terminal Output Formatting Package"""

import asyncio
import itertools
import os
import re
import sys
import time

ANSI = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'dim': '\033[2m',
    'red': '\033[31m',
    'green': '\033[32m',
    'yellow': '\033[33m',
    'magenta': '\033[35m',
    'cyan': '\033[36m',
}


def _supports_color(stream=None) -> bool:
    """NO_COLOR beats FORCE_COLOR beats tty detection."""
    stream = stream or sys.stdout
    if os.environ.get('NO_COLOR'):
        return False
    if os.environ.get('FORCE_COLOR'):
        return True
    return hasattr(stream, 'isatty') and stream.isatty()


def _supports_unicode(stream=None) -> bool:
    stream = stream or sys.stdout
    try:
        '✓─⠋'.encode(getattr(stream, 'encoding', None) or 'utf-8')
    except (UnicodeEncodeError, LookupError):
        return False
    return True


COLORS_ENABLED = _supports_color()
UNICODE_ENABLED = _supports_unicode()

CHECK, CROSS, WARN, RULE = ('✓', '✗', '⚠', '─') if UNICODE_ENABLED else ('[OK]', '[X]', '[!]', '-')


def paint(text: str, *styles: str) -> str:
    if not COLORS_ENABLED or not styles:
        return text
    return ''.join(ANSI[s] for s in styles) + text + ANSI['reset']


def success(text: str) -> str:
    return paint(text, 'green')


def error(text: str) -> str:
    return paint(text, 'red')


def warning(text: str) -> str:
    return paint(text, 'yellow')


def info(text: str) -> str:
    return paint(text, 'cyan')


def dim(text: str) -> str:
    return paint(text, 'dim')


def bold(text: str) -> str:
    return paint(text, 'bold')


def print_success(message: str) -> None:
    print(f"{success(CHECK)} {message}")


# stderr, stdout carries only the message in pipe mode
def print_error(message: str) -> None:
    print(f"{error(CROSS)} {error(message)}", file=sys.stderr)


def print_warning(message: str) -> None:
    print(f"{warning(WARN)} {warning(message)}", file=sys.stderr)


# feat/fix stand out, housekeeping types fade
COMMIT_TYPE_STYLES = {
    'feat': 'green', 'perf': 'green',
    'fix': 'red', 'revert': 'red',
    'refactor': 'yellow',
    'test': 'magenta',
    'docs': 'cyan', 'ci': 'cyan', 'build': 'cyan',
    'chore': 'dim', 'style': 'dim',
}

CIRCUIT_STATE_STYLES = {'CLOSED': 'green', 'HALF_OPEN': 'yellow', 'OPEN': 'red'}

_PREFIX_RE = re.compile(r'^(\w+)(\([^)]*\))?!?:')


def colorize_commit_type(message: str) -> str:
    """Color the type(scope): prefix of the subject line."""
    if not COLORS_ENABLED or not message:
        return message
    subject, sep, body = message.partition('\n')
    match = _PREFIX_RE.match(subject)
    style = COMMIT_TYPE_STYLES.get(match.group(1)) if match else None
    if style:
        prefix = match.group(0)
        subject = paint(prefix, 'bold', style) + subject[len(prefix):]
    return subject + sep + body


def colorize_circuit_state(state: str) -> str:
    style = CIRCUIT_STATE_STYLES.get(str(state).upper())
    return paint(str(state), style) if style else str(state)


class Spinner:
    """Spinner with elapsed seconds, drawn by a task on the running loop.

    Use with `async with`. Draws nothing unless the stream is a tty, but
    `elapsed` is always recorded.
    """
    FRAMES_UNICODE = '⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏'
    FRAMES_ASCII = '-\\|/'
    INTERVAL = 0.08

    def __init__(self, label: str = "", stream=None):
        self.label = label
        self.stream = stream or sys.stderr
        self.elapsed = 0.0
        self._started = 0.0
        self._task: asyncio.Task | None = None
        self._frames = self.FRAMES_UNICODE if UNICODE_ENABLED else self.FRAMES_ASCII

    @property
    def enabled(self) -> bool:
        return hasattr(self.stream, 'isatty') and self.stream.isatty()

    def _draw(self, text: str) -> None:
        print(f'\r\033[K{text}', end='', flush=True, file=self.stream)

    async def _spin(self) -> None:
        for frame in itertools.cycle(self._frames):
            seconds = time.monotonic() - self._started
            self._draw(f'{frame} {self.label} {dim(f"{seconds:.0f}s")}')
            await asyncio.sleep(self.INTERVAL)

    async def __aenter__(self) -> 'Spinner':
        self._started = time.monotonic()
        if self.enabled:
            self._task = asyncio.create_task(self._spin())
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.elapsed = time.monotonic() - self._started
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.wait([self._task])
        self._task = None
        self._draw('')


__all__ = [
    "ANSI", "COLORS_ENABLED", "UNICODE_ENABLED",
    "CHECK", "CROSS", "WARN", "RULE",
    "paint", "success", "error", "warning", "info", "dim", "bold",
    "print_success", "print_error", "print_warning",
    "colorize_commit_type", "colorize_circuit_state", "Spinner",
    "COMMIT_TYPE_STYLES",
]
