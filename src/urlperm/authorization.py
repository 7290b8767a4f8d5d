"""Authorization decisions for a single permission.

:class:`AuthorizationEngine` wraps the permission held by a subject and
answers three questions:

- :meth:`~AuthorizationEngine.allows` — are the requested permissions
  covered (path overlap, attribute coverage, full privilege coverage)?
- :meth:`~AuthorizationEngine.may_grant` — may the holder hand a
  permission to a grantee?
- :meth:`~AuthorizationEngine.may_revoke` — may the holder take it away?

Grant and revoke share one rule set. The holder must carry a
grant-enabling privilege, the new permission must fall within the holder's
path and attributes, and both the new privileges and any grant-enabling
privileges the grantee already holds on the same resource must be covered
by what the holder may grant. The last check stops a grantor from touching
a grantee whose existing delegation power exceeds the grantor's own.
"""
from __future__ import annotations

import logging
from typing import Iterable, Mapping

from urlperm.permission import Permission
from urlperm.privileges import PrivilegeSet

logger = logging.getLogger(__name__)


def flatten_permissions(
    items: Iterable[Permission | str | Iterable[Permission | str]],
) -> list[Permission | str]:
    """Flatten one level of nesting: ``("a", ["b", "c"])`` -> ``["a", "b", "c"]``."""
    result: list[Permission | str] = []
    for item in items:
        if isinstance(item, Iterable) and not isinstance(item, (str, Mapping)):
            result.extend(item)
        else:
            # Non-permission values are left for Permission.coerce to reject.
            result.append(item)  # type: ignore[arg-type]
    return result


class AuthorizationEngine:
    """Evaluates authorization questions against one held permission.

    Parameters
    ----------
    permission:
        The permission held by the subject.

    Examples
    --------
    ::

        engine = AuthorizationEngine(Permission.parse("/articles:s"))
        assert engine.may_grant("/articles:r")
        assert not engine.allows("/articles:r")
    """

    def __init__(self, permission: Permission | str) -> None:
        self.permission = Permission.coerce(permission)

    def _coerce(self, value: Permission | str) -> Permission:
        return Permission.coerce(value, self.permission.config)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def allows(self, *permissions: Permission | str | Iterable[Permission | str]) -> bool:
        """Return True if every requested permission is covered.

        Raises the originating parse error if a string is malformed.
        """
        requested = [self._coerce(p) for p in flatten_permissions(permissions)]
        return all(self._allows_one(candidate) for candidate in requested)

    def may_grant(
        self,
        permission: Permission | str,
        grantee_permissions: Iterable[Permission | str] = (),
    ) -> bool:
        """Return True if the holder may grant ``permission``.

        Parameters
        ----------
        permission:
            The permission to be granted.
        grantee_permissions:
            Permissions the grantee already holds.
        """
        return self._may_delegate("grant", permission, grantee_permissions)

    def may_revoke(
        self,
        permission: Permission | str,
        grantee_permissions: Iterable[Permission | str] = (),
    ) -> bool:
        """Return True if the holder may revoke ``permission``.

        Revocation authority mirrors grant authority.
        """
        return self._may_delegate("revoke", permission, grantee_permissions)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _allows_one(self, candidate: Permission) -> bool:
        held = self.permission
        return held.match_url(candidate) and held.match_privileges(candidate.privileges)

    def _may_delegate(
        self,
        operation: str,
        permission: Permission | str,
        grantee_permissions: Iterable[Permission | str],
    ) -> bool:
        held = self.permission
        new_permission = self._coerce(permission)

        allowed = held.privileges.grant_mask()
        if not allowed:
            logger.debug("%s denied: %s holds no grant privilege", operation, held)
            return False

        if not held.match_url(new_permission):
            logger.debug(
                "%s denied: %s does not cover %s", operation, held, new_permission
            )
            return False

        if not allowed.has(new_permission.privileges):
            logger.debug(
                "%s denied: %s may not delegate %s",
                operation,
                held,
                new_permission.privileges,
            )
            return False

        escalation = self._grantee_grant_privileges(grantee_permissions)
        escalation = escalation | new_permission.grant_privileges()
        if escalation and not allowed.has(escalation):
            logger.debug(
                "%s denied: grantee grant privileges %s exceed %s",
                operation,
                escalation,
                allowed,
            )
            return False

        return True

    def _grantee_grant_privileges(
        self, grantee_permissions: Iterable[Permission | str]
    ) -> PrivilegeSet:
        held = self.permission
        result = PrivilegeSet(0, held.config)
        for raw in grantee_permissions:
            existing = self._coerce(raw)
            if held.match_url(existing):
                result = result | existing.grant_privileges()
        return result
