"""Token Estimation - approximate model token counts from text length."""

import math

DEFAULT_CHARS_PER_TOKEN = 4.0
# Backends with hard context limits get a smaller ratio so estimates run high
STRICT_CHARS_PER_TOKEN = 3.5


class TokenEstimator:
    """Character-ratio token estimator (~4 chars per token for English/code)."""

    def __init__(self, chars_per_token: float = DEFAULT_CHARS_PER_TOKEN):
        if chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")
        self.chars_per_token = chars_per_token

    def estimate(self, text: str | None) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)

    def chars_for(self, tokens: int) -> int:
        """Largest character count whose estimate stays within `tokens`."""
        return max(0, int(tokens * self.chars_per_token))


def estimate_tokens(text: str | None, chars_per_token: float = DEFAULT_CHARS_PER_TOKEN) -> int:
    return TokenEstimator(chars_per_token).estimate(text)
