# src/sync_s3/diff.py
"""Computes which source keys are absent from the destination."""

from typing import Iterable, List, Set


def get_missing_keys(source: Iterable[str], destination: Iterable[str]) -> List[str]:
    """
    Returns the keys present in `source` but not in `destination`.

    Keys are compared by exact string equality. The result keeps the source
    order and holds each key once.

    Args:
        source (Iterable[str]): Relative keys listed from the source bucket.
        destination (Iterable[str]): Relative keys listed from the destination.

    Returns:
        List[str]: The missing keys.
    """
    seen: Set[str] = set(destination)
    missing: List[str] = []
    for key in source:
        if key in seen:
            continue
        seen.add(key)
        missing.append(key)
    return missing
