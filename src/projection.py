"""Projection of reconciled groups into output records."""

from __future__ import annotations

import copy

from pydantic import Field

from config import get_logger
from entities import BaseModel
from group import Group, GroupList

logger = get_logger(service="projection")

CREATOR = "keycloak-sync"
ANNOTATION_PREFIX = "keycloak-sync/"
CREATED_BY_ANNOTATION = f"{ANNOTATION_PREFIX}created-by"
SOURCE_ANNOTATION = f"{ANNOTATION_PREFIX}source"
REALMS_ANNOTATION = f"{ANNOTATION_PREFIX}realms"


class OutputGroup(BaseModel):
    name: str
    users: tuple[str, ...] = ()
    annotations: dict[str, str] = Field(default_factory=dict)


def annotations_for(group: Group) -> dict[str, str]:
    annotations = {
        CREATED_BY_ANNOTATION: CREATOR,
        SOURCE_ANNOTATION: group.source,
    }
    if group.realms:
        annotations[REALMS_ANNOTATION] = ",".join(group.realms)
    return annotations


def project(groups: GroupList, prune_enabled: bool, only_changed: bool) -> list[OutputGroup]:
    """Turn reconciled groups into output records.

    Skipped groups are never emitted. With ``prune_enabled`` every prune
    candidate is removed, which marks its group changed. With ``only_changed``
    groups that are still unchanged afterwards are left out.

    The caller's groups are not modified. Records are ordered by name and list
    their users sorted.
    """
    records: list[OutputGroup] = []
    for final_name in sorted(groups):
        group = groups[final_name]
        if group.skipped:
            continue

        working = copy.copy(group)
        working.users = dict(group.users)
        if prune_enabled:
            pruned = working.trim_pruned_users()
            if pruned:
                logger.info(f"pruned {len(pruned)} users from '{final_name}'", extra={"group": final_name, "users": pruned})

        if only_changed and not working.changed:
            logger.debug(f"group '{final_name}' is unchanged, not emitting")
            continue

        records.append(
            OutputGroup(
                name=final_name,
                users=tuple(sorted(working.users)),
                annotations=annotations_for(working),
            )
        )
    return records
