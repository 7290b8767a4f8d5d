"""Glob path compiler used for permission path matching.

Supported wildcards:

- ``*``  matches any run of characters within one path segment
- ``**`` matches zero or more complete path segments, but only when it is
  flanked by ``/`` or the start/end of the pattern (``/a/**/b``, ``/a/**``,
  ``**/b``). A run such as ``/a**/`` degrades to a single ``*``.

Unless the pattern ends in ``*``, the compiled expression also accepts any
sub-path of the pattern, so ``/articles`` covers ``/articles/article-1``.
That open suffix only applies to literal candidates: a candidate that
itself contains ``*`` must match the pattern exactly.

Example
-------
::

    matcher = PathMatcher("/articles/**/comments")
    assert matcher.test("/articles/a-1/comments")
    assert paths_overlap("/articles/*", "/articles/article-1")
"""
from __future__ import annotations

import functools
import re

_RESERVED: frozenset[str] = frozenset("$.=!^+|[]()?{}/\\")

_GLOBSTAR = "([^/]*(/|$))*"
_STAR = "[^/]*"


def _translate(pattern: str) -> str:
    result: list[str] = []
    i = 0
    length = len(pattern)
    while i < length:
        char = pattern[i]
        if char in _RESERVED:
            result.append(re.escape(char))
        elif char == "*":
            prev = pattern[i - 1] if i > 0 else ""
            multiple = False
            while i + 1 < length and pattern[i + 1] == "*":
                multiple = True
                i += 1
            nxt = pattern[i + 1] if i + 1 < length else ""
            if multiple and prev in ("", "/") and nxt in ("", "/"):
                result.append(_GLOBSTAR)
                # The globstar already consumes the trailing separator.
                i += 1
            else:
                result.append(_STAR)
        else:
            result.append(char)
        i += 1
    return "".join(result)


def glob_to_regex(pattern: str, open_suffix: bool = True) -> str:
    """Translate a glob path pattern into an anchored regular expression.

    Parameters
    ----------
    pattern:
        Path pattern, e.g. ``"/articles/**"``.
    open_suffix:
        When ``True`` (default) and the pattern does not end in ``*``,
        append an optional tail so that sub-paths also match.

    Returns
    -------
    str
    """
    body = _translate(pattern)
    if open_suffix and not pattern.endswith("*"):
        body += "(?:.*)?" if body.endswith("/") else "(?:/.*)?"
    return f"^{body}$"


@functools.lru_cache(maxsize=1024)
def compile_glob(pattern: str, open_suffix: bool = True) -> re.Pattern[str]:
    """Compile and cache :func:`glob_to_regex` for ``pattern``."""
    return re.compile(glob_to_regex(pattern, open_suffix=open_suffix), re.DOTALL)


class PathMatcher:
    """Compiled matcher for a single glob path pattern."""

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._open = compile_glob(pattern, open_suffix=True)
        self._exact = compile_glob(pattern, open_suffix=False)

    @property
    def regex(self) -> re.Pattern[str]:
        return self._open

    def test(self, candidate: str) -> bool:
        """Return True if ``candidate`` is covered by this pattern.

        ``candidate`` is treated as literal text; wildcards inside it are not
        expanded.
        """
        if "*" in candidate:
            return self._exact.match(candidate) is not None
        return self._open.match(candidate) is not None

    def __repr__(self) -> str:
        return f"PathMatcher({self.pattern!r})"


def paths_overlap(first: str, second: str) -> bool:
    """Return True if either path pattern matches the other's literal text."""
    return PathMatcher(first).test(second) or PathMatcher(second).test(first)
