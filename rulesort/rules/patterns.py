#!/usr/bin/env python3
r"""Pattern matching for file paths and values with glob and regex support.

This module provides pattern matching functionality for RuleSort:
- Glob pattern matching (*.py, **/*.txt, [a-z]*.md)
- Regex pattern matching with compiled patterns
- Globs where * and ? also match path separators
- Case-sensitive and case-insensitive modes
- Compiled pattern caching shared across worker threads

Example:
    >>> match_glob("**/photos/*.jpg", "/home/me/photos/cat.jpg")
    True
    >>> bool(compile_regex(r"^IMG_\d+").search("IMG_0042.jpg"))
    True
"""

import re
from functools import lru_cache
from typing import Pattern


class PatternError(ValueError):
    """Pattern could not be compiled."""

    def __init__(self, message: str, pattern: str):
        self.message = message
        self.pattern = pattern
        super().__init__(message)


def glob_to_regex(pattern: str) -> str:
    """Translate a glob pattern into an anchored regular expression.

    ``*`` matches any run of characters and ``?`` any single character,
    ``/`` included, so ``*.pdf`` matches a PDF at any depth. A leading
    ``**/`` also matches no directory at all.

    Args:
        pattern: Glob pattern

    Returns:
        Regular expression source

    Raises:
        PatternError: If a character class is not terminated
    """
    out = []
    i = 0
    n = len(pattern)

    while i < n:
        char = pattern[i]

        if char == "*":
            if pattern.startswith("**/", i) and (i == 0 or pattern[i - 1] == "/"):
                # **/ matches path/ or nothing
                out.append("(?:.*/)?")
                i += 3
                continue
            while i + 1 < n and pattern[i + 1] == "*":
                i += 1
            out.append(".*")
        elif char == "?":
            out.append(".")
        elif char == "[":
            end = i + 1
            if end < n and pattern[end] in "!^":
                end += 1
            if end < n and pattern[end] == "]":
                end += 1
            while end < n and pattern[end] != "]":
                end += 1
            if end >= n:
                raise PatternError(f"Unterminated character class in glob: {pattern}", pattern)

            body = pattern[i + 1 : end]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\")
            out.append(f"[{'^' if negate else ''}{body}]")
            i = end
        else:
            out.append(re.escape(char))
        i += 1

    return "^" + "".join(out) + "$"


@lru_cache(maxsize=1024)
def compile_glob(pattern: str, case_sensitive: bool = True) -> Pattern:
    """Compile (and cache) a glob pattern.

    Raises:
        PatternError: If the glob is malformed
    """
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(glob_to_regex(pattern), flags | re.DOTALL)
    except re.error as e:
        raise PatternError(f"Invalid glob pattern {pattern!r}: {e}", pattern)


@lru_cache(maxsize=1024)
def compile_regex(pattern: str, case_sensitive: bool = True) -> Pattern:
    """Compile (and cache) a regular expression.

    Raises:
        PatternError: If the regex is malformed
    """
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise PatternError(f"Invalid regex pattern {pattern!r}: {e}", pattern)


def match_glob(pattern: str, value: str) -> bool:
    """Match a single value against a glob pattern.

    Raises:
        PatternError: If the glob is malformed
    """
    return bool(compile_glob(pattern).match(value))
