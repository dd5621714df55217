from __future__ import annotations

import string
from collections.abc import Container

_ALPHABET = string.digits + string.ascii_lowercase


def encode_base36(index: int) -> str:
    """Encode a non-negative integer as a lowercase base36 string."""

    if index < 0:
        raise ValueError("index must be non-negative")
    if index == 0:
        return "0"
    digits: list[str] = []
    while index:
        index, rem = divmod(index, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


def next_class_name(prefix: str, start: int, taken: Container[str]) -> tuple[str, int]:
    """Return the first free ``<prefix><base36>`` name at or after ``start``.

    Returns the name together with the index that produced it so callers can
    continue counting from ``index + 1``.
    """

    index = start
    while True:
        name = f"{prefix}{encode_base36(index)}"
        if name not in taken:
            return name, index
        index += 1
