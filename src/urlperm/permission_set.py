"""Aggregate authorization over a collection of permissions.

A :class:`PermissionSet` models everything a subject has been granted.
Requested permissions are first *unwound*: multi-valued attribute
constraints are expanded into the cross product of single-valued atoms so
that each combination is checked independently. For example::

    /articles?a=1,2&b=x,y:r

unwinds to ``a=1&b=x``, ``a=1&b=y``, ``a=2&b=x`` and ``a=2&b=y``.

``allows`` may assemble privilege coverage piecewise from several held
permissions. ``may_grant`` and ``may_revoke`` require a single held
permission to authorise each atom on its own.
"""
from __future__ import annotations

import itertools
import logging
from typing import Iterable, Iterator

from urlperm.authorization import AuthorizationEngine, flatten_permissions
from urlperm.config import PrivilegeConfig
from urlperm.permission import Permission

logger = logging.getLogger(__name__)

PermissionInput = Permission | str


def unwind(permission: PermissionInput, config: PrivilegeConfig | None = None) -> list[Permission]:
    """Expand multi-valued attributes into single-valued permissions.

    Keys keep their declared order and values vary fastest for the last key.
    A permission without attributes unwinds to a one-element list.
    """
    perm = Permission.coerce(permission, config)
    attributes = perm.attributes
    if not attributes:
        return [perm.clone()]

    keys = list(attributes)
    return [
        perm.with_attributes({key: (value,) for key, value in zip(keys, combination)})
        for combination in itertools.product(*(attributes[key] for key in keys))
    ]


class PermissionSet:
    """An ordered collection of permissions representing an accumulated grant.

    The set owns its members: strings are parsed and permissions are
    copied on construction.

    Parameters
    ----------
    *permissions:
        Permission strings or objects, optionally nested one level in lists.
    config:
        Configuration used to parse strings. Defaults to the active one.

    Examples
    --------
    ::

        granted = PermissionSet("/articles:r", "/articles:u")
        assert granted.allows("/articles:ru")
    """

    def __init__(
        self,
        *permissions: PermissionInput | Iterable[PermissionInput],
        config: PrivilegeConfig | None = None,
    ) -> None:
        self._config = config
        self._permissions: tuple[Permission, ...] = tuple(
            Permission.coerce(p, config).clone() for p in flatten_permissions(permissions)
        )

    @property
    def permissions(self) -> tuple[Permission, ...]:
        return self._permissions

    def with_permissions(
        self, *permissions: PermissionInput | Iterable[PermissionInput]
    ) -> PermissionSet:
        """Return a new set holding ``permissions`` instead."""
        return PermissionSet(*permissions, config=self._config)

    def __iter__(self) -> Iterator[Permission]:
        return iter(self._permissions)

    def __len__(self) -> int:
        return len(self._permissions)

    def __getitem__(self, index: int) -> Permission:
        return self._permissions[index]

    def __repr__(self) -> str:
        return f"PermissionSet({', '.join(repr(str(p)) for p in self._permissions)})"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def allows(self, *permissions: PermissionInput | Iterable[PermissionInput]) -> bool:
        """Return True if every requested permission is covered by the set.

        Privileges of each unwound atom may be covered by different members.
        """
        atoms = self._unwind_all(flatten_permissions(permissions))
        return all(self._covers(atom) for atom in atoms)

    def may_grant(
        self,
        permission: PermissionInput,
        grantee_permissions: Iterable[PermissionInput] = (),
    ) -> bool:
        """Return True if some member may grant each unwound atom of ``permission``."""
        grantee = list(grantee_permissions)
        return all(
            any(AuthorizationEngine(held).may_grant(atom, grantee) for held in self._permissions)
            for atom in unwind(permission, self._config)
        )

    def may_revoke(
        self,
        permission: PermissionInput,
        grantee_permissions: Iterable[PermissionInput] = (),
    ) -> bool:
        """Return True if some member may revoke each unwound atom of ``permission``."""
        grantee = list(grantee_permissions)
        return all(
            any(AuthorizationEngine(held).may_revoke(atom, grantee) for held in self._permissions)
            for atom in unwind(permission, self._config)
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _unwind_all(self, permissions: list[PermissionInput]) -> list[Permission]:
        atoms: list[Permission] = []
        for permission in permissions:
            atoms.extend(unwind(permission, self._config))
        return atoms

    def _covers(self, atom: Permission) -> bool:
        remaining = atom.privileges
        for held in self._permissions:
            if not remaining:
                break
            if held.match_url(atom):
                remaining = remaining.without(held.privileges)
        if remaining:
            logger.debug("Set does not cover %s; missing %s", atom, remaining)
            return False
        return True
