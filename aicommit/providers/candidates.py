"""Candidate parsing - raw model text to validated commit message lines."""

import re

from aicommit import COMMIT_TYPE_NAMES
from aicommit.errors import ErrorKind, ProviderError

MIN_MESSAGE_LENGTH = 10
MAX_MESSAGE_LENGTH = 200

TYPES_PATTERN = '|'.join(COMMIT_TYPE_NAMES)
CONVENTIONAL_RE = re.compile(rf'^({TYPES_PATTERN})!?(\([^)]+\))?!?: \S')

# Numbering, bullets and option labels models like to prepend
_LINE_PREFIX_RE = re.compile(r'^(\[Option \d+\]\s*|\d+[.)]\s*|[-*•]\s+)')
_QUOTES = '"\'`'


def _clean_line(line: str) -> str:
    line = line.strip()
    line = _LINE_PREFIX_RE.sub('', line, count=1).strip()
    if len(line) >= 2 and line[0] in _QUOTES and line[-1] == line[0]:
        line = line[1:-1].strip()
    return line.strip('`').strip()


def parse_response(content: str | None, provider: str = "provider") -> list[str]:
    """Split a model response into cleaned, non-empty candidate lines."""
    if not isinstance(content, str):
        raise ProviderError(ErrorKind.MALFORMED_RESPONSE,
                            f"Invalid response format from {provider}", provider=provider)

    lines = []
    for raw in content.split('\n'):
        if raw.strip().startswith('```'):
            continue
        line = _clean_line(raw)
        if line:
            lines.append(line)
    return lines


def validate_commit_message(message: str, conventional: bool = True,
                            max_length: int = MAX_MESSAGE_LENGTH) -> tuple[bool, str]:
    """Validate one candidate line. Returns (is_valid, reason)."""
    if not message or not message.strip():
        return False, "Empty message"

    trimmed = message.strip()
    if '\n' in trimmed:
        return False, "Message spans multiple lines"
    if len(trimmed) < MIN_MESSAGE_LENGTH:
        return False, "Message too short"
    if len(trimmed) > max_length:
        return False, f"Message longer than {max_length} chars"
    if not re.match(r'^\w', trimmed):
        return False, "Message starts with a special character"
    if conventional and not CONVENTIONAL_RE.match(trimmed):
        return False, f"Missing conventional commit format. Got: {trimmed[:50]}"

    return True, ""


def dedupe(messages: list[str]) -> list[str]:
    """Drop repeats, keeping the order of first occurrence."""
    return list(dict.fromkeys(messages))


def score_message(message: str) -> int:
    """Conventional format outranks length; readable lengths beat extremes."""
    score = 10 if CONVENTIONAL_RE.match(message) else 0
    length = len(message)
    if 20 <= length <= 100:
        score += 5
    elif MIN_MESSAGE_LENGTH <= length <= 150:
        score += 2
    return score


def select_best(messages: list[str], count: int) -> list[str]:
    """Best `count` distinct messages. Ties keep their original order."""
    return sorted(dedupe(messages), key=score_message, reverse=True)[:count]


def extract_candidates(content: str | None, conventional: bool = True, limit: int | None = None,
                       provider: str = "provider", max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Parse, validate and de-duplicate candidates from one response."""
    valid = [line for line in parse_response(content, provider)
             if validate_commit_message(line, conventional, max_length)[0]]
    valid = dedupe(valid)
    return valid[:limit] if limit else valid
