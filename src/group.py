"""Entity model for reconciled groups and their members.

A ``Group`` is the unit every source is reduced to: Keycloak realms produce
them while flattening their group trees, the OpenShift baseline produces them
while decoding. A ``GroupList`` keys groups by their computed final name, which
is the identity used when sources are merged.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

DEFAULT_SUBGROUP_SEPARATOR = "."

BASELINE_ID = "openshift"
BASELINE_SOURCE = "openshift"
REALM_SOURCE_PREFIX = "realm:"


def realm_source(realm_name: str) -> str:
    return f"{REALM_SOURCE_PREFIX}{realm_name}"


@dataclass
class User:
    """A group member.

    Attributes:
        id: Provider identifier (or the baseline sentinel).
        name: Username, unique within a group's membership.
        prune: True while the membership is only known from the baseline and
            no merged source has reaffirmed it.
    """

    id: str
    name: str
    prune: bool = False


@dataclass
class Group:
    """A group as seen by one source, or the merged result of several.

    ``parent`` is a read-only relation used to walk the ancestor chain when
    computing the final name. It is never followed for anything else and the
    flat ``GroupList`` does not own it.
    """

    id: str
    name: str
    alias: str = ""
    prefix: str = ""
    suffix: str = ""
    path: str = ""

    subgroup_concat: bool = False
    subgroup_separator: str = ""

    users: dict[str, User] = field(default_factory=dict)

    source: str = ""
    realms: list[str] = field(default_factory=list)

    # set once a meaningful change (new membership, pruning) happened
    changed: bool = False
    # filtered out by a block rule; excluded from output and from ancestor names
    skipped: bool = False

    parent: Optional[Group] = field(default=None, repr=False, compare=False)
    children: list[Group] = field(default_factory=list, repr=False, compare=False)

    @property
    def separator(self) -> str:  # noqa: ANN101
        return self.subgroup_separator.strip() or DEFAULT_SUBGROUP_SEPARATOR

    def iter_ancestors(self) -> Iterator[Group]:  # noqa: ANN101
        """Yield ancestors from the immediate parent outward to the root."""
        seen = {id(self)}
        ancestor = self.parent
        while ancestor is not None:
            if id(ancestor) in seen:
                raise ValueError(f"Group '{self.name}' has a cycle in its ancestry")
            seen.add(id(ancestor))
            yield ancestor
            ancestor = ancestor.parent

    def ancestor_names(self) -> list[str]:  # noqa: ANN101
        """Names of the non-skipped ancestors, root first.

        A skipped ancestor is left out but the walk continues past it.
        """
        names = [ancestor.name for ancestor in self.iter_ancestors() if not ancestor.skipped]
        names.reverse()
        return names

    def final_name(self) -> str:  # noqa: ANN101
        if self.alias:
            return self.alias

        parts = [self.prefix]
        if self.subgroup_concat:
            ancestors = self.ancestor_names()
            if ancestors:
                separator = self.separator
                parts.append(separator.join(ancestors) + separator)
        parts.append(self.name)
        parts.append(self.suffix)
        return "".join(parts)

    def add_user(self, user: User) -> None:  # noqa: ANN101
        self.users[user.name] = user

    def add_user_if_absent(self, user: User) -> bool:  # noqa: ANN101
        if user.name in self.users:
            return False
        self.users[user.name] = user
        return True

    def trim_pruned_users(self) -> list[str]:  # noqa: ANN101
        """Remove every prune candidate and mark the group changed if any were removed."""
        pruned = sorted(name for name, user in self.users.items() if user.prune)
        for name in pruned:
            del self.users[name]
        if pruned:
            self.changed = True
        return pruned


class GroupList(dict[str, Group]):
    """Groups keyed by their final name.

    The key always equals ``group.final_name()``; assigning a group under any
    other key raises ``ValueError``.
    """

    @classmethod
    def from_groups(cls, groups: Iterable[Group]) -> GroupList:
        group_list = cls()
        for group in groups:
            group_list.add(group)
        return group_list

    def __setitem__(self, key: str, group: Group) -> None:  # noqa: ANN101
        final_name = group.final_name()
        if key != final_name:
            raise ValueError(f"Group key '{key}' does not match its final name '{final_name}'")
        super().__setitem__(key, group)

    def __deepcopy__(self, memo: dict) -> GroupList:  # noqa: ANN101
        result = GroupList()
        memo[id(self)] = result
        for key, group in self.items():
            # the shared memo keeps a retained ancestor and a child's parent the same object
            dict.__setitem__(result, key, copy.deepcopy(group, memo))
        return result

    def add(self, group: Group) -> str:  # noqa: ANN101
        key = group.final_name()
        super().__setitem__(key, group)
        return key

