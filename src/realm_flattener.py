"""Flattening of a realm's group tree into a name-keyed GroupList.

The tree is walked with an explicit worklist instead of recursion so subgroup
depth does not affect the stack. Each node is resolved against the realm's
filters and naming settings, and membership can afterwards be propagated from
a subgroup up to all of its ancestors.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Sequence

from config import get_logger
from errors import MembershipFetchError
from group import Group, GroupList, User, realm_source

if TYPE_CHECKING:
    from entities.keycloak import KeycloakGroup, KeycloakUser
    from sync_config import RealmConfig

logger = get_logger(service="realm_flattener")

MemberFetcher = Callable[[Group], Iterable[Sequence["KeycloakUser"]]]


@dataclass(frozen=True)
class _WorkItem:
    node: KeycloakGroup
    parent: Optional[Group]
    # still looking for an allow-listed root
    root_candidate: bool


def _build_group(node: KeycloakGroup, parent: Optional[Group], realm: RealmConfig, skipped: bool) -> Group:
    name = node.name or ""
    return Group(
        id=node.id,
        name=name,
        alias=realm.aliases.get(name, ""),
        prefix=realm.group_prefix,
        suffix=realm.group_suffix,
        path=node.path,
        subgroup_concat=realm.subgroup_concat,
        subgroup_separator=realm.subgroup_separator,
        # provider groups always count as changed; only baseline groups start unchanged
        changed=True,
        source=realm_source(realm.name),
        realms=[realm.name],
        parent=parent,
        skipped=skipped,
    )


def flatten_group_tree(
    tree: Iterable[KeycloakGroup],
    realm: RealmConfig,
    search_by_name: bool = False,
) -> GroupList:
    """Flatten a realm's group forest into groups keyed by final name.

    The allow list (``realm.groups``) only narrows the set of roots. A root
    candidate that is not allowed is dropped together with its subtree, unless
    ``search_by_name`` is set, in which case its subgroups become root
    candidates so that a nested match is still found. The same holds for the
    subgroups of an allowed root when subgroups are not otherwise walked.

    A group whose raw name is blocked is marked skipped: it is not retained and
    it does not contribute to ancestor names, but its subgroups are still
    walked. A group whose final name is blocked is simply not retained.

    Args:
        tree: Root groups as returned by the provider.
        realm: The realm's configuration.
        search_by_name: The tree came from name searches and may hold the
            allow-listed groups below unrelated roots.

    Returns:
        GroupList of the retained groups. Within one realm the last group to
        resolve to a final name wins.
    """
    output = GroupList()
    allowed = {name for name in realm.groups if name}
    blocked_groups = set(realm.blocked_groups)
    blocked_names = set(realm.blocked_names)

    worklist = deque(_WorkItem(node=node, parent=None, root_candidate=True) for node in tree)
    while worklist:
        item = worklist.popleft()
        node = item.node
        if not node.name:
            continue

        if item.root_candidate and allowed and node.name not in allowed:
            if search_by_name:
                worklist.extend(_WorkItem(node=child, parent=None, root_candidate=True) for child in node.sub_groups)
            else:
                logger.debug(f"realm {realm.name} | group '{node.name}' is not in the allowed groups")
            continue

        skipped = node.name in blocked_groups
        group = _build_group(node, item.parent, realm, skipped)

        if realm.subgroups:
            worklist.extend(_WorkItem(node=child, parent=group, root_candidate=False) for child in node.sub_groups)
        elif search_by_name and item.root_candidate:
            # search results can hold allow-listed groups below an allowed root
            worklist.extend(_WorkItem(node=child, parent=None, root_candidate=True) for child in node.sub_groups)

        if skipped:
            logger.debug(f"realm {realm.name} | group '{group.name}' is blocked, skipping")
            continue

        final_name = group.final_name()
        if final_name in blocked_names:
            logger.debug(f"realm {realm.name} | final name '{final_name}' is blocked, skipping")
            continue

        if final_name in output:
            logger.debug(f"realm {realm.name} | group '{group.path}' replaces an earlier group named '{final_name}'")
        output.add(group)

    logger.info(f"realm {realm.name} | flattened {len(output)} groups", extra={"realm": realm.name, "groups": len(output)})
    return output


def _add_member(group: Group, member: KeycloakUser, realm: RealmConfig) -> bool:
    username = member.preferred_name(realm.preferred_username)
    if not username:
        return False

    group.add_user(User(id=member.id, name=username))
    if realm.subgroup_promote_users:
        for ancestor in group.iter_ancestors():
            ancestor.add_user_if_absent(User(id=member.id, name=username))
    return True


def populate_members(groups: GroupList, realm: RealmConfig, fetch_members: MemberFetcher) -> int:
    """Fetch membership for every retained group.

    Members are inserted page by page, so a failure part way through leaves the
    members fetched so far in place. A failure only affects that one group.

    Args:
        groups: Groups produced by ``flatten_group_tree``.
        realm: The realm's configuration.
        fetch_members: Returns the member pages of a group.

    Returns:
        Number of memberships added directly (promotions not counted).
    """
    added = 0
    for final_name, group in groups.items():
        try:
            for page in fetch_members(group):
                for member in page:
                    if _add_member(group, member, realm):
                        added += 1
        except MembershipFetchError as e:
            logger.error(
                f"realm {realm.name} | could not get members of group '{final_name}': {e}",
                extra={"realm": realm.name, "group": final_name, "group_id": group.id},
            )
    return added
