"""Privilege sets: a bit-mask over a configured privilege space.

A :class:`PrivilegeSet` pairs an integer mask with the
:class:`~urlperm.config.PrivilegeConfig` it was resolved against.
Textual input is accepted in every form the configuration allows:

- privilege names: ``"read,update"``
- aliases: ``"owner"``
- runs of one-character identifiers: ``"ru"`` (identifier form only)
- a decimal mask: ``"5"`` or ``5``
- any mix of the above, comma separated: ``"ru,c,delete"``
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Sequence, Union

from urlperm.config import PrivilegeConfig, get_config
from urlperm.exceptions import (
    MalformedPermissionError,
    PrivilegeOutOfRangeError,
    UnknownPrivilegeError,
)

PrivilegeInput = Union["PrivilegeSet", int, str, Sequence[str]]


def _resolve_token(token: str, config: PrivilegeConfig) -> int:
    bit = config.bit_for(token)
    if bit is not None:
        return bit
    alias = config.alias_mask(token)
    if alias is not None:
        return alias
    if token.isdigit():
        return _check_range(int(token), config)
    if not config.identifier_mode:
        raise UnknownPrivilegeError(token)
    mask = 0
    for char in token:
        char_bit = config.bit_for(char)
        if char_bit is None:
            raise UnknownPrivilegeError(char)
        mask |= char_bit
    return mask


def _check_range(value: int, config: PrivilegeConfig) -> int:
    if not 1 <= value <= config.full_mask:
        raise PrivilegeOutOfRangeError(value, config.full_mask)
    return value


@dataclass(frozen=True)
class PrivilegeSet:
    """Immutable set of privileges.

    Attributes
    ----------
    mask:
        Bit-mask of held privileges. Zero only ever appears as an
        intermediate result (e.g. after :meth:`without`).
    config:
        The configuration the mask is interpreted against.
    """

    mask: int
    config: PrivilegeConfig = field(
        default_factory=get_config, compare=False, hash=False, repr=False
    )

    @classmethod
    def resolve(
        cls,
        value: PrivilegeInput,
        config: PrivilegeConfig | None = None,
    ) -> PrivilegeSet:
        """Parse ``value`` into a non-empty PrivilegeSet.

        Raises
        ------
        MalformedPermissionError
            If ``value`` has an unsupported type or names no privilege.
        UnknownPrivilegeError
            If a token is not a configured name, alias or identifier.
        PrivilegeOutOfRangeError
            If a numeric mask lies outside the configured range.
        """
        config = config or get_config()

        if isinstance(value, PrivilegeSet):
            return cls(_check_range(value.mask, config), config)
        if isinstance(value, bool):
            raise MalformedPermissionError("Privileges must be a string, list or number.")
        if isinstance(value, int):
            return cls(_check_range(value, config), config)
        if isinstance(value, str):
            tokens = value.split(",")
        elif isinstance(value, (list, tuple)):
            tokens = []
            for item in value:
                if not isinstance(item, str):
                    raise MalformedPermissionError(
                        f"Privilege list items must be strings; got {item!r}."
                    )
                tokens.extend(item.split(","))
        else:
            raise MalformedPermissionError("Privileges must be a string, list or number.")

        tokens = [token.strip() for token in tokens if token.strip()]
        if not tokens:
            raise MalformedPermissionError("Permission must contain at least 1 privilege.")

        mask = 0
        for token in tokens:
            mask |= _resolve_token(token, config)
        return cls(mask, config)

    # ------------------------------------------------------------------
    # Set algebra
    # ------------------------------------------------------------------

    def has(self, other: PrivilegeSet | int) -> bool:
        """Return True if every bit of ``other`` is held (and ``other`` is non-empty)."""
        bits = int(other)
        return bits != 0 and (self.mask & bits) == bits

    def overlaps(self, other: PrivilegeSet | int) -> bool:
        """Return True if at least one bit of ``other`` is held."""
        return (self.mask & int(other)) != 0

    def without(self, other: PrivilegeSet | int) -> PrivilegeSet:
        """Return a copy with the bits of ``other`` cleared."""
        return PrivilegeSet(self.mask & ~int(other), self.config)

    def grant_privileges(self) -> PrivilegeSet:
        """Return the grant-enabling privileges held by this set."""
        return PrivilegeSet(self.mask & self.config.grant_enabling_mask, self.config)

    def grant_mask(self) -> PrivilegeSet:
        """Return every privilege the held grant-enabling privileges may grant."""
        return PrivilegeSet(self.config.grant_mask(self.mask), self.config)

    def has_privilege(self, privilege: str) -> bool:
        """Return True if the named privilege, alias or identifier run is held."""
        return self.has(PrivilegeSet.resolve(privilege, self.config))

    def __or__(self, other: PrivilegeSet | int) -> PrivilegeSet:
        return PrivilegeSet(self.mask | int(other), self.config)

    def __and__(self, other: PrivilegeSet | int) -> PrivilegeSet:
        return PrivilegeSet(self.mask & int(other), self.config)

    def __int__(self) -> int:
        return self.mask

    def __bool__(self) -> bool:
        return self.mask != 0

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def identifiers(self) -> list[str]:
        """Shortest labels of held privileges, in configuration order."""
        return [d.label for d in self.config.definitions_in(self.mask)]

    @property
    def names(self) -> list[str]:
        return [d.name for d in self.config.definitions_in(self.mask)]

    def __iter__(self) -> Iterator[str]:
        return iter(self.identifiers)

    def __len__(self) -> int:
        return len(self.identifiers)

    def __str__(self) -> str:
        if self.config.identifier_mode:
            return "".join(self.identifiers)
        return ",".join(self.names)
