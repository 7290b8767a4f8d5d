"""Privilege configuration: schema, runtime value, YAML loader and process-wide holder.

A configuration describes the privilege space permissions are parsed
against. Two textual forms are accepted and both resolve to the same
canonical bit-mask representation:

* **identifier form** — one-character identifiers mapped to privilege names.
  Bits are assigned in declaration order (first identifier is ``1``)::

      privileges:
        c: create
        r: read
      aliases:
        all: [c, r]
      grant_privileges:
        s: [c, r, s]

* **numeric form** — privilege names mapped to explicit power-of-two bits::

      privileges:
        read: 1
        create: 2
      grant_privileges:
        create: 3

Raw input is validated by :class:`PrivilegeConfigModel` (pydantic) and
converted into an immutable :class:`PrivilegeConfig`, which is what
permissions capture at construction time.

Example
-------
::

    from urlperm.config import configure, get_config, reset_config

    configure(privileges={"read": 1, "create": 2})
    assert get_config().full_mask == 3
    reset_config()
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from urlperm.exceptions import PermissionConfigError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_PRIVILEGES: dict[str, str] = {
    "c": "create",
    "r": "read",
    "u": "update",
    "d": "delete",
    "s": "super",
    "m": "manage",
}

DEFAULT_ALIASES: dict[str, list[str]] = {
    "all": ["c", "r", "u", "d"],
    "manager": ["c", "r", "u", "d", "m"],
    "owner": ["c", "r", "u", "d", "s"],
}

DEFAULT_GRANT_PRIVILEGES: dict[str, list[str]] = {
    "m": ["c", "r", "u", "d"],
    "s": ["c", "r", "u", "d", "s", "m"],
}

_SECTIONS: tuple[str, ...] = ("privileges", "aliases", "grant_privileges")


# ---------------------------------------------------------------------------
# Runtime value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrivilegeDefinition:
    """A single configured privilege.

    Attributes
    ----------
    name:
        Full privilege name, e.g. ``"read"``.
    bit:
        The power-of-two bit representing this privilege.
    identifier:
        One-character identifier, or ``None`` in the numeric form.
    """

    name: str
    bit: int
    identifier: str | None = None

    @property
    def label(self) -> str:
        """Return the shortest textual form of this privilege."""
        return self.identifier if self.identifier is not None else self.name


@dataclass(frozen=True, eq=False)
class PrivilegeConfig:
    """Immutable, fully resolved privilege configuration.

    Build one with :meth:`from_mapping` (validated) or :meth:`default`.
    Instances are never mutated after construction, so a permission may
    keep a reference to the config it was parsed with.

    Attributes
    ----------
    definitions:
        Configured privileges in declaration order.
    aliases:
        Alias name to privilege bit-mask.
    grant_masks:
        Bit of each grant-enabling privilege to the mask it may grant.
    """

    definitions: tuple[PrivilegeDefinition, ...]
    aliases: Mapping[str, int] = field(default_factory=dict)
    grant_masks: Mapping[int, int] = field(default_factory=dict)
    _by_token: dict[str, int] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "aliases", MappingProxyType(dict(self.aliases)))
        object.__setattr__(self, "grant_masks", MappingProxyType(dict(self.grant_masks)))
        by_token: dict[str, int] = {}
        for definition in self.definitions:
            by_token[definition.name] = definition.bit
            if definition.identifier is not None:
                by_token[definition.identifier] = definition.bit
        object.__setattr__(self, "_by_token", by_token)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def default(cls) -> PrivilegeConfig:
        """Return the built-in ``crudsm`` configuration."""
        return cls.from_mapping({})

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, object],
        config_path: str | None = None,
    ) -> PrivilegeConfig:
        """Validate a raw mapping and build a PrivilegeConfig.

        Missing sections fall back to the defaults, except that a mapping
        declaring its own ``privileges`` starts with no aliases and no grant
        privileges unless it declares those too.

        Raises
        ------
        PermissionConfigError
            If the mapping does not describe a well-formed configuration.
        """
        if not isinstance(data, Mapping):
            raise PermissionConfigError(
                "Privilege config must be a mapping (dict).", config_path
            )
        try:
            model = PrivilegeConfigModel.model_validate(dict(data))
        except ValidationError as exc:
            raise PermissionConfigError(
                f"Invalid privilege config: {exc}", config_path
            ) from exc
        return model.to_config()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def identifier_mode(self) -> bool:
        """True when privileges are addressed by one-character identifiers."""
        return all(d.identifier is not None for d in self.definitions)

    @property
    def full_mask(self) -> int:
        """Union of every configured privilege bit."""
        mask = 0
        for definition in self.definitions:
            mask |= definition.bit
        return mask

    @property
    def grant_enabling_mask(self) -> int:
        """Union of the bits of every grant-enabling privilege."""
        mask = 0
        for bit in self.grant_masks:
            mask |= bit
        return mask

    def bit_for(self, token: str) -> int | None:
        """Return the bit for a privilege name or identifier, or ``None``."""
        return self._by_token.get(token)

    def alias_mask(self, alias: str) -> int | None:
        return self.aliases.get(alias)

    def grant_mask(self, held: int) -> int:
        """Union of the grant masks of every grant-enabling privilege in ``held``."""
        mask = 0
        for bit, grantable in self.grant_masks.items():
            if held & bit:
                mask |= grantable
        return mask

    def definitions_in(self, mask: int) -> Iterator[PrivilegeDefinition]:
        """Yield the definitions whose bits are set in ``mask``, in config order."""
        for definition in self.definitions:
            if mask & definition.bit:
                yield definition

    def to_dict(self) -> dict[str, object]:
        """Return the configuration in the textual form it was declared in."""
        if self.identifier_mode:
            privileges: dict[str, object] = {
                d.identifier: d.name for d in self.definitions  # type: ignore[misc]
            }
            aliases: dict[str, object] = {
                alias: [d.label for d in self.definitions_in(mask)]
                for alias, mask in self.aliases.items()
            }
            grants: dict[str, object] = {
                self._label_for_bit(bit): [d.label for d in self.definitions_in(mask)]
                for bit, mask in self.grant_masks.items()
            }
        else:
            privileges = {d.name: d.bit for d in self.definitions}
            aliases = {
                alias: [d.label for d in self.definitions_in(mask)]
                for alias, mask in self.aliases.items()
            }
            grants = {
                self._label_for_bit(bit): mask for bit, mask in self.grant_masks.items()
            }
        return {
            "privileges": privileges,
            "aliases": aliases,
            "grant_privileges": grants,
        }

    def _label_for_bit(self, bit: int) -> str:
        for definition in self.definitions:
            if definition.bit == bit:
                return definition.label
        raise KeyError(bit)


# ---------------------------------------------------------------------------
# Validation schema
# ---------------------------------------------------------------------------


class PrivilegeConfigModel(BaseModel):
    """Pydantic schema validating a raw privilege configuration.

    Unknown top-level keys are rejected so that typos such as
    ``grantPrivileges`` do not silently fall back to defaults.
    """

    model_config = {"extra": "forbid"}

    privileges: dict[str, int | str] = Field(
        default_factory=lambda: dict(DEFAULT_PRIVILEGES)
    )
    aliases: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ALIASES.items()}
    )
    grant_privileges: dict[str, int | list[str]] = Field(
        default_factory=lambda: {
            k: list(v) for k, v in DEFAULT_GRANT_PRIVILEGES.items()
        }
    )

    @model_validator(mode="before")
    @classmethod
    def drop_default_references(cls, data: object) -> object:
        # Default aliases and grants name the default identifiers only.
        if isinstance(data, dict) and "privileges" in data:
            data = dict(data)
            data.setdefault("aliases", {})
            data.setdefault("grant_privileges", {})
        return data

    @field_validator("privileges")
    @classmethod
    def validate_privileges(cls, value: dict[str, int | str]) -> dict[str, int | str]:
        if not value:
            raise ValueError("Privileges must contain at least one privilege.")

        numeric = [v for v in value.values() if isinstance(v, int)]
        if numeric and len(numeric) != len(value):
            raise ValueError(
                "Privileges must map either identifiers to names or names to bits, not both."
            )

        if numeric:
            seen: set[int] = set()
            for name, bit in value.items():
                if not name or "," in name or name.isdigit():
                    raise ValueError(f"Privilege name {name!r} is not a valid name.")
                if bit <= 0 or bit & (bit - 1):
                    raise ValueError(
                        f"Privilege {name!r} must specify a power-of-two number; got {bit!r}."
                    )
                if bit in seen:
                    raise ValueError(f"Privilege bit {bit} is assigned more than once.")
                seen.add(bit)
            return value

        names: set[str] = set()
        for identifier, name in value.items():
            if len(identifier) != 1 or identifier.isdigit() or identifier == ",":
                raise ValueError(
                    f"Privilege identifier {identifier!r} must be 1 non-digit character."
                )
            if len(str(name)) <= 1:
                raise ValueError(
                    f"Privilege name {name!r} must be at least 2 characters."
                )
            if name in names:
                raise ValueError(f"Privilege name {name!r} is declared more than once.")
            names.add(str(name))
        return value

    @model_validator(mode="after")
    def validate_references(self) -> PrivilegeConfigModel:
        lookup = self._token_bits()
        full = 0
        for bit in lookup.values():
            full |= bit

        for alias, tokens in self.aliases.items():
            if not tokens:
                raise ValueError(f"Alias {alias!r} must contain at least one privilege.")
            if alias in lookup:
                raise ValueError(f"Alias {alias!r} shadows a privilege.")
            for token in tokens:
                if token not in lookup:
                    raise ValueError(
                        f"Alias {alias!r} contains unknown privilege {token!r}."
                    )

        for key, grantable in self.grant_privileges.items():
            if key not in lookup:
                raise ValueError(f"Grant privilege {key!r} is not a configured privilege.")
            if isinstance(grantable, int):
                if not 1 <= grantable <= full:
                    raise ValueError(
                        f"Grant privilege {key!r} must specify a mask within 1-{full}."
                    )
                continue
            if not grantable:
                raise ValueError(f"Grant privilege {key!r} must list at least one privilege.")
            for token in grantable:
                if token not in lookup:
                    raise ValueError(
                        f"Grant privilege {key!r} contains unknown privilege {token!r}."
                    )
        return self

    def _token_bits(self) -> dict[str, int]:
        lookup: dict[str, int] = {}
        for definition in self._definitions():
            lookup[definition.name] = definition.bit
            if definition.identifier is not None:
                lookup[definition.identifier] = definition.bit
        return lookup

    def _definitions(self) -> tuple[PrivilegeDefinition, ...]:
        if all(isinstance(v, int) for v in self.privileges.values()):
            return tuple(
                PrivilegeDefinition(name=name, bit=int(bit))
                for name, bit in self.privileges.items()
            )
        return tuple(
            PrivilegeDefinition(name=str(name), bit=1 << index, identifier=identifier)
            for index, (identifier, name) in enumerate(self.privileges.items())
        )

    def to_config(self) -> PrivilegeConfig:
        """Resolve every textual reference and return the runtime value."""
        lookup = self._token_bits()

        def _mask(tokens: list[str]) -> int:
            mask = 0
            for token in tokens:
                mask |= lookup[token]
            return mask

        aliases = {alias: _mask(tokens) for alias, tokens in self.aliases.items()}
        grant_masks: dict[int, int] = {}
        for key, grantable in self.grant_privileges.items():
            mask = grantable if isinstance(grantable, int) else _mask(grantable)
            grant_masks[lookup[key]] = grant_masks.get(lookup[key], 0) | mask
        return PrivilegeConfig(
            definitions=self._definitions(),
            aliases=aliases,
            grant_masks=grant_masks,
        )


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class ConfigLoader:
    """Loads a :class:`PrivilegeConfig` from YAML files, strings or dicts.

    Examples
    --------
    ::

        loader = ConfigLoader()
        config = loader.load_from_yaml_string(
            "privileges:\\n  read: 1\\n  write: 2\\n"
        )
        assert config.full_mask == 3
    """

    def load(self, config_path: str | Path) -> PrivilegeConfig:
        """Load a PrivilegeConfig from a YAML file on disk.

        Raises
        ------
        FileNotFoundError
            If the config file does not exist.
        PermissionConfigError
            If the file cannot be parsed or is structurally invalid.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Privilege config not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise PermissionConfigError(
                f"Failed to parse YAML: {exc}", str(config_path)
            ) from exc

        config = PrivilegeConfig.from_mapping(raw, config_path=str(config_path))
        logger.info(
            "Loaded %d privileges from %s", len(config.definitions), config_path
        )
        return config

    def load_from_yaml_string(
        self,
        yaml_string: str,
        config_path: str | None = None,
    ) -> PrivilegeConfig:
        """Load a PrivilegeConfig from a YAML string."""
        try:
            raw = yaml.safe_load(yaml_string) or {}
        except yaml.YAMLError as exc:
            raise PermissionConfigError(
                f"Failed to parse YAML string: {exc}", config_path
            ) from exc
        return PrivilegeConfig.from_mapping(raw, config_path=config_path)

    def load_from_dict(
        self,
        config: Mapping[str, object],
        config_path: str | None = None,
    ) -> PrivilegeConfig:
        """Load a PrivilegeConfig from an already-parsed mapping."""
        return PrivilegeConfig.from_mapping(config, config_path=config_path)


def load_config(config_path: str | Path) -> PrivilegeConfig:
    """Shortcut for ``ConfigLoader().load(config_path)``."""
    return ConfigLoader().load(config_path)


# ---------------------------------------------------------------------------
# Process-wide holder
# ---------------------------------------------------------------------------

_lock = threading.Lock()
_current: PrivilegeConfig = PrivilegeConfig.default()


def _install(config: PrivilegeConfig) -> PrivilegeConfig:
    # Caller holds _lock.
    global _current
    _current = config
    logger.info("Installed privilege config with %d privileges", len(config.definitions))
    return config


def get_config() -> PrivilegeConfig:
    """Return the active process-wide configuration."""
    return _current


def set_config(config: PrivilegeConfig | Mapping[str, object]) -> PrivilegeConfig:
    """Replace the process-wide configuration.

    ``config`` may be a ready :class:`PrivilegeConfig` or a raw mapping,
    which is validated first. Already constructed permissions keep the
    configuration they were parsed with.
    """
    if not isinstance(config, PrivilegeConfig):
        config = PrivilegeConfig.from_mapping(config)
    with _lock:
        return _install(config)


def configure(**sections: object) -> PrivilegeConfig:
    """Override individual sections of the active configuration.

    Accepts ``privileges``, ``aliases`` and ``grant_privileges``. When
    ``privileges`` is replaced, aliases and grant privileges not supplied in
    the same call are cleared since they referred to the old privilege space.
    The merge and the swap happen under one lock, so concurrent calls never
    lose each other's sections.

    Raises
    ------
    PermissionConfigError
        If an unknown section is passed or the result is invalid.
    """
    unknown = set(sections) - set(_SECTIONS)
    if unknown:
        raise PermissionConfigError(
            f"Unknown config sections: {sorted(unknown)}. Known: {list(_SECTIONS)}."
        )
    with _lock:
        merged = _current.to_dict()
        if "privileges" in sections:
            merged["aliases"] = {}
            merged["grant_privileges"] = {}
        merged.update({key: value for key, value in sections.items() if value is not None})
        return _install(PrivilegeConfig.from_mapping(merged))


def reset_config() -> PrivilegeConfig:
    """Restore the built-in default configuration."""
    return set_config(PrivilegeConfig.default())
