"""Exception hierarchy for URL permission parsing and configuration.

Every error raised by the library derives from :class:`UrlPermissionError`,
which itself subclasses ``ValueError`` so callers that already catch
``ValueError`` around parsing keep working.
"""
from __future__ import annotations


class UrlPermissionError(ValueError):
    """Base class for all urlperm errors."""


class MalformedPermissionError(UrlPermissionError):
    """Raised when a permission string or setter argument is structurally invalid.

    Examples: a missing ``:`` privilege delimiter, an empty path, or a
    non-string value where a path is expected.
    """


class UnknownPrivilegeError(UrlPermissionError):
    """Raised when a privilege name, alias or identifier is not configured.

    Attributes
    ----------
    privilege:
        The offending token.
    """

    def __init__(self, privilege: str) -> None:
        self.privilege = privilege
        super().__init__(f"Privilege {privilege!r} does not exist.")


class PrivilegeOutOfRangeError(UrlPermissionError):
    """Raised when a numeric privilege mask lies outside ``[1, maximum]``."""

    def __init__(self, value: int, maximum: int) -> None:
        self.value = value
        self.maximum = maximum
        super().__init__(
            f"Privilege mask {value!r} is out of range; expected 1-{maximum}."
        )


class InvalidAttributeError(UrlPermissionError):
    """Raised when an attribute value is neither a string nor a collection of strings."""


class PermissionConfigError(UrlPermissionError):
    """Raised when a privilege configuration is malformed or invalid.

    Attributes
    ----------
    config_path:
        The path to the config file that caused the error, if known.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        prefix = f"[{config_path}] " if config_path else ""
        super().__init__(f"{prefix}{message}")
