"""Sync configuration loader for Keycloak group sync.

This module provides loading and validation of the YAML configuration that
lists the realms to read and how each realm's groups are filtered and named.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Literal, NoReturn, Optional

import yaml
from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator

from config import get_logger
from entities import BaseModel
from errors import SyncConfigurationError

logger = get_logger(service="sync_config")


class ClientAuthConfig(BaseModel):
    client_id: str = Field(alias="client-id", min_length=1)
    client_secret: str = Field(alias="client-secret", min_length=1)


class UserAuthConfig(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    # optional, for when the login realm differs from the realm being read
    login_realm: str = Field(default="", alias="realm")


class RealmConfig(BaseModel):
    """Per-realm settings.

    Attributes:
        name: Realm name in Keycloak.
        url: Keycloak base URL (including any ``/auth`` context path).
        client: Client credentials login.
        user: Admin user login, used when no client is configured.
        ssl_verify: Verify the server certificate.
        preferred_username: User attributes to use as the member name, in order.
        groups: Allow list. When set, only groups with these names (at any
            depth) become roots of the traversal.
        blocked_groups: Raw group names that are skipped.
        blocked_names: Final names that are never emitted.
        group_prefix: Prepended to every final name.
        group_suffix: Appended to every final name.
        aliases: Raw group name to final name overrides.
        subgroups: Descend into subgroups.
        subgroup_promote_users: Add subgroup members to every ancestor.
        subgroup_concat: Prefix subgroup names with their ancestors' names.
        subgroup_separator: Joins ancestor names.
    """

    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    client: Optional[ClientAuthConfig] = None
    user: Optional[UserAuthConfig] = None
    ssl_verify: bool = Field(default=True, alias="ssl-verify")
    preferred_username: tuple[str, ...] = Field(default=(), alias="preferred-username")
    groups: tuple[str, ...] = ()
    blocked_groups: tuple[str, ...] = Field(default=(), alias="blocked-groups")
    blocked_names: tuple[str, ...] = Field(default=(), alias="blocked-names")
    group_prefix: str = Field(default="", alias="group-prefix")
    group_suffix: str = Field(default="", alias="group-suffix")
    aliases: dict[str, str] = Field(default_factory=dict)
    subgroups: bool = False
    subgroup_promote_users: bool = Field(
        default=False,
        validation_alias=AliasChoices("subgroup-promote-users", "subroup-promote-users", "subgroup_promote_users"),
    )
    subgroup_concat: bool = Field(default=False, alias="subgroup-concat-names")
    subgroup_separator: str = Field(default=".", alias="subgroup-separator")

    @field_validator(
        "preferred_username",
        "groups",
        "blocked_groups",
        "blocked_names",
        "aliases",
        "group_prefix",
        "group_suffix",
        "subgroup_separator",
        mode="before",
    )
    @classmethod
    def empty_yaml_value_as_default(cls, v: object, info) -> object:  # noqa: ANN001
        # `groups:` with nothing after it loads as None
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        if isinstance(v, str) and info.field_name in ("preferred_username", "groups", "blocked_groups", "blocked_names"):
            return (v,)
        return v

    @model_validator(mode="after")
    def check_authentication(self) -> RealmConfig:  # noqa: ANN101
        if self.client is None and self.user is None:
            raise ValueError(f"realm '{self.name}' needs either a 'client' or a 'user' login")
        return self


class SyncConfiguration(BaseModel):
    """Complete sync configuration.

    Attributes:
        realms: Realms in merge order; the first realm to produce a final name
            establishes that group, later realms merge onto it.
        prune: Mark baseline members for removal unless a realm reaffirms them.
        baseline_position: Whether the baseline is the first or the last
            source folded into the result.
    """

    realms: tuple[RealmConfig, ...] = ()
    prune: bool = False
    baseline_position: Literal["first", "last"] = Field(default="first", alias="baseline-position")

    @field_validator("realms", mode="before")
    @classmethod
    def empty_realms(cls, v: object) -> object:
        return () if v is None else v


def _format_validation_error(error: ValidationError) -> list[str]:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        messages.append(f"{location}: {err['msg']}" if location else err["msg"])
    return messages


def validate_sync_config(config: SyncConfiguration) -> list[str]:
    """Validate cross-field rules that the schema cannot express.

    Validates:
        - Realm names are unique
        - No group is both allowed and blocked in the same realm

    Args:
        config: The sync configuration to validate.

    Returns:
        List of validation error messages. Empty if valid.
    """
    errors: list[str] = []

    counts = Counter(realm.name for realm in config.realms)
    for name, count in counts.items():
        if count > 1:
            errors.append(f"realm '{name}' is configured {count} times")

    for realm in config.realms:
        contradictory = sorted(set(realm.groups) & set(realm.blocked_groups))
        if contradictory:
            errors.append(f"realm '{realm.name}': groups {contradictory} are both allowed and blocked")

    return errors


def parse_sync_config(raw: object) -> SyncConfiguration:
    """Build and validate a configuration from already-parsed YAML.

    Raises:
        SyncConfigurationError: If configuration is invalid.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SyncConfigurationError(f"Sync configuration must be a mapping, got {type(raw).__name__}")

    try:
        config = SyncConfiguration.model_validate(raw)
    except ValidationError as e:
        _raise_invalid(_format_validation_error(e))

    errors = validate_sync_config(config)
    if errors:
        _raise_invalid(errors)

    return config


def _raise_invalid(errors: list[str]) -> NoReturn:
    error_msg = "Sync configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
    logger.error(error_msg)
    raise SyncConfigurationError(error_msg)


def load_sync_config(path: str | Path) -> SyncConfiguration:
    """Load and validate sync configuration from a YAML file.

    This is the main entry point for loading sync configuration.

    Args:
        path: Path of the YAML configuration file.

    Returns:
        Validated SyncConfiguration.

    Raises:
        SyncConfigurationError: If the file is missing, unreadable or invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise SyncConfigurationError(f"The configuration file {path} does not exist")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise SyncConfigurationError(f"Could not read config file {path}: {e}") from e

    config = parse_sync_config(raw)
    logger.info(f"Loaded sync configuration with {len(config.realms)} realms", extra={"path": str(path)})
    return config
