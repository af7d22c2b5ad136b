from __future__ import annotations

"""Token budget approximation used to gate context inclusion."""

import math

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count as ceil(len(text) / 4).

    The estimate is deliberately tokenizer-free so selection budgets stay
    stable across model providers.
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
