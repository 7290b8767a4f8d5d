"""Syntactic validation of permission strings.

These helpers answer "would this parse?" without raising, for callers that
want to check user input before constructing a :class:`~urlperm.permission.Permission`.

Example
-------
::

    validate("/articles?author=1,2:all,m")   # True
    validate("/articles:unknown")            # False
    validate("?author=user-1:c")             # False
"""
from __future__ import annotations

from urlperm.config import PrivilegeConfig
from urlperm.exceptions import UrlPermissionError
from urlperm.permission import Permission
from urlperm.privileges import PrivilegeSet


def validate_privileges(privilege_text: str, config: PrivilegeConfig | None = None) -> bool:
    """Return True if every comma-separated token resolves to privileges.

    A token may be a privilege name, an alias, a run of identifiers or a
    numeric mask.
    """
    try:
        PrivilegeSet.resolve(privilege_text, config)
    except UrlPermissionError:
        return False
    return True


def validate(permission: object, config: PrivilegeConfig | None = None) -> bool:
    """Return True if ``permission`` is a well-formed permission string."""
    if not isinstance(permission, str):
        return False
    try:
        Permission.parse(permission, config)
    except UrlPermissionError:
        return False
    return True
