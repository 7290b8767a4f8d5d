"""The Permission data model.

A permission string has the form::

    <path>[?<key>=<value>[,<value>...][&<key>=<value>...]]:<privileges>

for example ``/articles/**?author=user-1,user-2&status=draft:read,update``.
The rightmost ``:`` separates privileges, the first ``?`` separates
attribute constraints from the path.

Permissions are immutable. ``with_path``, ``with_attributes`` and
``with_privileges`` validate their argument and return a new permission.
The privilege configuration active at construction time is captured in the
permission's :class:`~urlperm.privileges.PrivilegeSet`, so later changes to
the process-wide configuration never alter existing permissions.

Example
-------
::

    perm = Permission.parse("/articles?author=user-1:ru")
    assert perm.path == "/articles"
    assert perm.attributes == {"author": ("user-1",)}
    assert perm.allows("/articles?author=user-1:r")
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Union

from urlperm.config import PrivilegeConfig, get_config
from urlperm.exceptions import InvalidAttributeError, MalformedPermissionError
from urlperm.path_matcher import paths_overlap
from urlperm.privileges import PrivilegeInput, PrivilegeSet

logger = logging.getLogger(__name__)

Attributes = dict[str, tuple[str, ...]]
AttributeInput = Union[str, Mapping[str, Union[str, Iterable[str]]], None]

WILDCARD_VALUE = "*"


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def parse_attributes(query: str) -> Attributes:
    """Parse ``key=v1,v2&key2=v3`` (optionally prefixed by ``?``)."""
    if query.startswith("?"):
        query = query[1:]
    result: Attributes = {}
    for piece in query.split("&"):
        key, sep, value = piece.partition("=")
        if not key or not sep:
            raise MalformedPermissionError(
                f"Attribute {piece!r} must have the form key=value."
            )
        result[key] = tuple(value.split(","))
    return result


def normalize_attributes(attributes: AttributeInput) -> Attributes | None:
    """Coerce a query string or mapping into attribute constraints.

    Mapping values may be a comma-separated string or a collection of
    strings. ``None``, an empty mapping and an empty query string all mean
    unconstrained.
    """
    if attributes is None:
        return None
    if isinstance(attributes, str):
        return parse_attributes(attributes) if attributes.lstrip("?") else None
    if not isinstance(attributes, Mapping):
        raise MalformedPermissionError(
            "Attributes must be a mapping or a query string."
        )

    result: Attributes = {}
    for key, value in attributes.items():
        if isinstance(value, str):
            values = tuple(value.split(","))
        elif isinstance(value, (list, tuple, set, frozenset)) and all(
            isinstance(v, str) for v in value
        ):
            values = tuple(value)
        else:
            raise InvalidAttributeError(
                f"Attribute {key!r} must be a string or a collection of strings; "
                f"got {value!r}."
            )
        if not values:
            raise InvalidAttributeError(f"Attribute {key!r} must have at least one value.")
        result[str(key)] = values
    return result or None


def _validate_path(path: object) -> str:
    if not isinstance(path, str):
        raise MalformedPermissionError("Path must be a string.")
    if not path:
        raise MalformedPermissionError("Path must not be empty.")
    return path


# ---------------------------------------------------------------------------
# Permission
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Permission:
    """A (path, attribute constraints, privileges) triple.

    Attributes
    ----------
    path:
        Literal path or glob pattern, never empty.
    attributes:
        Mapping of key to allowed values, or ``None`` when unconstrained.
    privileges:
        Held privileges, never empty.
    """

    path: str
    attributes: Attributes | None
    privileges: PrivilegeSet

    def __post_init__(self) -> None:
        _validate_path(self.path)
        object.__setattr__(self, "attributes", normalize_attributes(self.attributes))
        if not isinstance(self.privileges, PrivilegeSet):
            object.__setattr__(self, "privileges", PrivilegeSet.resolve(self.privileges))
        elif not self.privileges:
            raise MalformedPermissionError("Permission must contain at least 1 privilege.")

    __hash__ = None  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, text: str, config: PrivilegeConfig | None = None) -> Permission:
        """Parse a permission string.

        Raises
        ------
        MalformedPermissionError
            If ``text`` is not a string, lacks the ``:`` delimiter or has an
            empty path.
        UnknownPrivilegeError
            If a privilege cannot be resolved.
        """
        if not isinstance(text, str):
            raise MalformedPermissionError("Permission must be a string.")
        url, sep, privilege_text = text.rpartition(":")
        if not sep:
            raise MalformedPermissionError(
                'Permission must contain at least 1 privilege delimited by ":".'
            )

        config = config or get_config()
        privileges = PrivilegeSet.resolve(privilege_text, config)

        path, question, query = url.partition("?")
        attributes = parse_attributes(query) if question else None
        return cls(path=_validate_path(path), attributes=attributes, privileges=privileges)

    @classmethod
    def coerce(
        cls,
        value: Permission | str,
        config: PrivilegeConfig | None = None,
    ) -> Permission:
        """Return ``value`` if it is a Permission, otherwise parse it."""
        if isinstance(value, Permission):
            return value
        return cls.parse(value, config)

    @property
    def config(self) -> PrivilegeConfig:
        return self.privileges.config

    def clone(self) -> Permission:
        """Return an independent copy of this permission."""
        return Permission(
            path=self.path,
            attributes=self.attributes_copy(),
            privileges=self.privileges,
        )

    def attributes_copy(self) -> Attributes | None:
        if self.attributes is None:
            return None
        return dict(self.attributes)

    # ------------------------------------------------------------------
    # Modifiers
    # ------------------------------------------------------------------

    def with_path(self, path: str) -> Permission:
        """Return a copy with a different path."""
        return Permission(
            path=_validate_path(path),
            attributes=self.attributes_copy(),
            privileges=self.privileges,
        )

    def with_attributes(self, attributes: AttributeInput) -> Permission:
        """Return a copy with different attribute constraints.

        ``attributes`` may be a query string (``"?a=1,2&b=3"``), a mapping of
        key to a comma-separated string or collection of strings, or ``None``
        to remove every constraint.
        """
        return Permission(
            path=self.path,
            attributes=normalize_attributes(attributes),
            privileges=self.privileges,
        )

    def with_privileges(self, privileges: PrivilegeInput) -> Permission:
        """Return a copy with different privileges, resolved against this permission's config."""
        return Permission(
            path=self.path,
            attributes=self.attributes_copy(),
            privileges=PrivilegeSet.resolve(privileges, self.config),
        )

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def grant_privileges(self) -> PrivilegeSet:
        """Return the held privileges that enable granting."""
        return self.privileges.grant_privileges()

    def has_privilege(self, privilege: str) -> bool:
        return self.privileges.has_privilege(privilege)

    def match_path(self, path: str) -> bool:
        """Return True if ``path`` overlaps this permission's path."""
        return paths_overlap(self.path, path)

    def match_attributes(self, attributes: Attributes | None) -> bool:
        """Return True if ``attributes`` are covered by this permission's constraints.

        An unconstrained permission covers anything. Otherwise every key this
        permission constrains must be present in ``attributes`` and each of
        its values must be among the values allowed here, unless the
        requested values contain the ``*`` marker.
        """
        ours = self.attributes
        if ours is None:
            return True
        if not attributes:
            return False
        for key, allowed in ours.items():
            requested = attributes.get(key)
            if not requested:
                return False
            if WILDCARD_VALUE in requested:
                continue
            if not all(value in allowed for value in requested):
                return False
        return True

    def match_privileges(self, privileges: PrivilegeSet | int) -> bool:
        """Return True if every privilege in ``privileges`` is held."""
        return self.privileges.has(privileges)

    def match_url(self, other: Permission | str) -> bool:
        """Return True if path and attributes of ``other`` are covered."""
        other = Permission.coerce(other, self.config)
        return self.match_path(other.path) and self.match_attributes(other.attributes)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def allows(self, *permissions: Permission | str | Iterable[Permission | str]) -> bool:
        """Return True if this permission covers every given permission."""
        from urlperm.authorization import AuthorizationEngine

        return AuthorizationEngine(self).allows(*permissions)

    def may_grant(
        self,
        permission: Permission | str,
        grantee_permissions: Iterable[Permission | str] = (),
    ) -> bool:
        """Return True if the holder may grant ``permission`` to a grantee."""
        from urlperm.authorization import AuthorizationEngine

        return AuthorizationEngine(self).may_grant(permission, grantee_permissions)

    def may_revoke(
        self,
        permission: Permission | str,
        grantee_permissions: Iterable[Permission | str] = (),
    ) -> bool:
        """Return True if the holder may revoke ``permission`` from a grantee."""
        from urlperm.authorization import AuthorizationEngine

        return AuthorizationEngine(self).may_revoke(permission, grantee_permissions)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "attributes": (
                {key: list(values) for key, values in self.attributes.items()}
                if self.attributes is not None
                else None
            ),
            "privileges": self.privileges.identifiers,
        }

    def __str__(self) -> str:
        result = self.path
        if self.attributes is not None:
            result += "?" + "&".join(
                f"{key}={','.join(values)}" for key, values in self.attributes.items()
            )
        return f"{result}:{self.privileges}"
