"""Reconciliation of Keycloak realms and the OpenShift baseline.

Realms are read one at a time in configuration order. Each realm's groups are
merged onto the accumulated result, so the first realm to produce a final name
establishes that group and later realms add to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

import httpx

import keycloak
from config import get_logger
from errors import AuthenticationError, GroupFetchError
from group import GroupList
from merge import merge
from realm_flattener import flatten_group_tree, populate_members

if TYPE_CHECKING:
    from entities.keycloak import KeycloakGroup
    from keycloak import KeycloakClient
    from sync_config import RealmConfig, SyncConfiguration

logger = get_logger(service="reconcile")

ClientFactory = Callable[["RealmConfig"], "KeycloakClient"]


@dataclass
class SyncResult:
    """Outcome of a reconciliation run."""

    start_time: datetime
    end_time: Optional[datetime] = None
    groups: GroupList = field(default_factory=GroupList)

    realms_processed: list[str] = field(default_factory=list)
    realms_failed: list[str] = field(default_factory=list)
    baseline_groups: int = 0

    @property
    def success(self) -> bool:  # noqa: ANN101
        return not self.realms_failed

    def log_start(self) -> None:  # noqa: ANN101
        logger.info(
            "Group reconciliation started",
            extra={"operation": "sync_start", "start_time": self.start_time.isoformat()},
        )

    def log_completion(self) -> None:  # noqa: ANN101
        duration_ms = None
        if self.end_time:
            duration_ms = int((self.end_time - self.start_time).total_seconds() * 1000)

        logger.info(
            "Group reconciliation completed",
            extra={
                "operation": "sync_complete",
                "duration_ms": duration_ms,
                "success": self.success,
                "realms_processed": self.realms_processed,
                "realms_failed": self.realms_failed,
                "baseline_groups": self.baseline_groups,
                "groups": len(self.groups),
            },
        )


def fetch_group_tree(client: KeycloakClient, token: keycloak.KeycloakToken, realm: RealmConfig) -> tuple[list[KeycloakGroup], bool]:
    """Fetch the realm's group forest.

    Without an allow list this is the whole tree. With one, every allowed name
    is searched for separately and the results are concatenated; the second
    element of the returned tuple tells the flattener the tree came from name
    searches.
    """
    names = [name for name in realm.groups if name]
    if not names:
        return client.get_groups(token, realm.name), False

    tree: list[KeycloakGroup] = []
    for name in names:
        try:
            tree.extend(client.get_groups(token, realm.name, search=name))
        except GroupFetchError as e:
            logger.warning(f"realm {realm.name} | could not get group named {name}: {e}")
    return tree, True


def get_realm_groups(realm: RealmConfig, client: KeycloakClient) -> GroupList:
    """Read, flatten and populate one realm's groups.

    Raises:
        AuthenticationError: If the realm session cannot be established.
        GroupFetchError: If the group tree cannot be read or holds no groups.
    """
    with keycloak.keycloak_session(client, realm) as token:
        tree, search_by_name = fetch_group_tree(client, token, realm)
        groups = flatten_group_tree(tree, realm, search_by_name=search_by_name)
        populate_members(groups, realm, lambda group: client.iter_group_members(token, realm.name, group.id))

    if not groups:
        raise GroupFetchError("no groups returned for realm")
    return groups


def get_keycloak_groups(
    config: SyncConfiguration,
    client_factory: ClientFactory = keycloak.create_client,
    accumulator: Optional[GroupList] = None,
    result: Optional[SyncResult] = None,
) -> GroupList:
    """Merge every configured realm, in order, onto ``accumulator``.

    A realm that fails to authenticate or to return its groups is logged and
    skipped; the remaining realms are still processed.
    """
    groups = accumulator if accumulator is not None else GroupList()
    for realm in config.realms:
        try:
            with client_factory(realm) as client:
                realm_groups = get_realm_groups(realm, client)
        except (AuthenticationError, GroupFetchError, httpx.HTTPError) as e:
            logger.error(f"realm {realm.name} | {e}", extra={"realm": realm.name})
            if result is not None:
                result.realms_failed.append(realm.name)
            continue

        groups = merge(groups, realm_groups)
        if result is not None:
            result.realms_processed.append(realm.name)
    return groups


def reconcile(
    config: SyncConfiguration,
    baseline: Optional[GroupList] = None,
    client_factory: ClientFactory = keycloak.create_client,
) -> SyncResult:
    """Reconcile all configured realms with the baseline.

    The baseline is the starting point of the fold when
    ``config.baseline_position`` is ``first`` and is merged onto the realms'
    result when it is ``last``.
    """
    baseline = baseline if baseline is not None else GroupList()
    result = SyncResult(start_time=datetime.now(timezone.utc), baseline_groups=len(baseline))
    result.log_start()

    if config.baseline_position == "first":
        result.groups = get_keycloak_groups(config, client_factory, accumulator=baseline, result=result)
    else:
        keycloak_groups = get_keycloak_groups(config, client_factory, result=result)
        result.groups = merge(keycloak_groups, baseline)

    result.end_time = datetime.now(timezone.utc)
    result.log_completion()
    return result
