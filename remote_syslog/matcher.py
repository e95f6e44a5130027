"""Exclusion matching: does a value hit any pattern in an ordered set."""

import re
from typing import Iterable


def matches(value: str, patterns: Iterable[re.Pattern]) -> bool:
    """Return True if any pattern matches anywhere in *value*.

    Patterns are tried in order and the first hit wins. An empty set never
    matches. Used for both file-path and line-content exclusion.
    """
    for pattern in patterns:
        if pattern.search(value):
            return True
    return False
