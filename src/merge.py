"""Merging of GroupLists from several sources into one.

Groups meet on their final name. The target's group keeps its identity and
accumulates the realms and members contributed by the source.
"""

from __future__ import annotations

import copy
import functools
from typing import Iterable

from config import get_logger
from group import BASELINE_SOURCE, GroupList

logger = get_logger(service="merge")


def merge(target: GroupList, source: GroupList) -> GroupList:
    """Merge ``source`` onto ``target`` and return the result.

    Neither input is mutated. For every source group:

    - a final name not yet in the result is inserted as it is;
    - otherwise the source realms are appended, members already present are
      reaffirmed (their prune flag is cleared) and new members are added,
      which marks the group changed.

    Args:
        target: The accumulated groups (or the baseline).
        source: Groups from the next source in order.

    Returns:
        A new GroupList.
    """
    accumulator = copy.deepcopy(target)
    incoming = copy.deepcopy(source)

    for final_name, group in incoming.items():
        existing = accumulator.get(final_name)
        if existing is None:
            accumulator[final_name] = group
            continue

        existing.realms.extend(group.realms)
        for username, user in group.users.items():
            current = existing.users.get(username)
            if current is None:
                existing.users[username] = user
                existing.changed = True
                continue

            if not current.prune and _across_realms(existing.source, group.source):
                logger.warning(
                    f"user '{username}' is already a member of '{final_name}' from {existing.source}, duplicate found in {group.source}",
                    extra={"group": final_name, "user": username, "source": group.source},
                )
            elif current.prune:
                logger.debug(f"user '{username}' in '{final_name}' reaffirmed by {group.source}")
            current.prune = False

    return accumulator


def _across_realms(existing_source: str, incoming_source: str) -> bool:
    # a baseline member confirmed by a realm is expected, not a duplicate
    return existing_source != incoming_source and BASELINE_SOURCE not in (existing_source, incoming_source)


def merge_all(group_lists: Iterable[GroupList], initial: GroupList | None = None) -> GroupList:
    """Fold group lists left to right; the first to produce a final name establishes it."""
    return functools.reduce(merge, group_lists, initial if initial is not None else GroupList())
