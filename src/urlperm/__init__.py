"""urlperm — URL-style permission strings with glob paths, attributes and privileges.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import urlperm
>>> urlperm.permission("/articles:r").allows("/articles:read")
True
>>> urlperm.permission("/articles:s").may_grant("/articles:r")
True
>>> urlperm.permissions("/articles:r", "/articles:u").allows("/articles:ru")
True
"""
from __future__ import annotations

__version__: str = "0.1.0"

from typing import Iterable

from urlperm.authorization import AuthorizationEngine
from urlperm.config import (
    ConfigLoader,
    PrivilegeConfig,
    PrivilegeConfigModel,
    PrivilegeDefinition,
    configure,
    get_config,
    load_config,
    reset_config,
    set_config,
)
from urlperm.exceptions import (
    InvalidAttributeError,
    MalformedPermissionError,
    PermissionConfigError,
    PrivilegeOutOfRangeError,
    UnknownPrivilegeError,
    UrlPermissionError,
)
from urlperm.path_matcher import PathMatcher, compile_glob, glob_to_regex, paths_overlap
from urlperm.permission import Permission
from urlperm.permission_set import PermissionSet, unwind
from urlperm.privileges import PrivilegeSet
from urlperm.validate import validate, validate_privileges


def permission(value: Permission | str) -> Permission:
    """Parse ``value`` (or copy it, if already a Permission) into a Permission."""
    if isinstance(value, Permission):
        return value.clone()
    return Permission.parse(value)


def permissions(*values: Permission | str | Iterable[Permission | str]) -> PermissionSet:
    """Build a PermissionSet from permission strings or objects."""
    return PermissionSet(*values)


__all__ = [
    "__version__",
    # Facade
    "permission",
    "permissions",
    # Core types
    "AuthorizationEngine",
    "PathMatcher",
    "Permission",
    "PermissionSet",
    "PrivilegeSet",
    "compile_glob",
    "glob_to_regex",
    "paths_overlap",
    "unwind",
    # Configuration
    "ConfigLoader",
    "PrivilegeConfig",
    "PrivilegeConfigModel",
    "PrivilegeDefinition",
    "configure",
    "get_config",
    "load_config",
    "reset_config",
    "set_config",
    # Validation
    "validate",
    "validate_privileges",
    # Errors
    "InvalidAttributeError",
    "MalformedPermissionError",
    "PermissionConfigError",
    "PrivilegeOutOfRangeError",
    "UnknownPrivilegeError",
    "UrlPermissionError",
]
