#!/usr/bin/python3

from typing import Sequence, TypeVar

from .errors import InvalidOperatorSelection

T = TypeVar("T")


def parse_selection(text: str, count: int) -> list[int]:
    """
    Parses an episode selection into zero-based indices.

    Accepts 'all' or a comma-separated list of one-based indices and inclusive ranges
    ('1,3,5-7').  Duplicates are dropped, keeping the first occurrence.
    """
    text = "".join(text.split())
    if not text:
        raise InvalidOperatorSelection("No episodes selected")
    if text.lower() == "all":
        return list(range(count))

    indices: dict[int, None] = {}
    for token in text.split(","):
        start_str, sep, end_str = token.partition("-")
        if not start_str.isdigit() or (sep and not end_str.isdigit()):
            raise InvalidOperatorSelection(f"Invalid selection '{token}'")

        start = int(start_str)
        end = int(end_str) if sep else start
        if start > end:
            raise InvalidOperatorSelection(f"Invalid range '{token}'")
        if start < 1 or end > count:
            raise InvalidOperatorSelection(
                f"Selection '{token}' is out of range (1 to {count} available)"
            )
        for n in range(start, end + 1):
            indices.setdefault(n - 1)
    return list(indices)


def select_items(items: Sequence[T], text: str) -> list[T]:
    return [items[i] for i in parse_selection(text, len(items))]
