"""Declarative cache invalidation rules for allocation mutations.

Each mutation kind names the cache keys a successful write makes stale, so
the invalidation set can be audited and tested without any service wiring.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Hashable


CacheKey = tuple[Hashable, ...]

USER_CAPACITY = "user_capacity"
PROJECT_MEMBERS = "project_members"
WORKLOAD_ANALYTICS = "workload_analytics"
WORKLOAD_HISTORY = "workload_history"


def user_capacity_key(user_id: int) -> CacheKey:
    return (USER_CAPACITY, user_id)


def project_members_key(project_id: int) -> CacheKey:
    return (PROJECT_MEMBERS, project_id)


def workload_analytics_key() -> CacheKey:
    return (WORKLOAD_ANALYTICS,)


def workload_history_key(project_id: int, user_id: int) -> CacheKey:
    return (WORKLOAD_HISTORY, project_id, user_id)


class MutationKind(str, Enum):
    ADD_MEMBER = "add_member"
    UPDATE_WORKLOAD = "update_workload"
    REMOVE_MEMBER = "remove_member"
    REMOTE_REJECTION = "remote_rejection"


@dataclass(frozen=True)
class MutationTarget:
    project_id: int
    user_id: int


def _membership_keys(target: MutationTarget) -> list[CacheKey]:
    return [
        user_capacity_key(target.user_id),
        project_members_key(target.project_id),
        workload_analytics_key(),
    ]


INVALIDATION_RULES: dict[MutationKind, Callable[[MutationTarget], list[CacheKey]]] = {
    MutationKind.ADD_MEMBER: _membership_keys,
    MutationKind.UPDATE_WORKLOAD: lambda target: _membership_keys(target)
    + [workload_history_key(target.project_id, target.user_id)],
    MutationKind.REMOVE_MEMBER: _membership_keys,
    # A rejected write means the snapshot we validated against was stale.
    MutationKind.REMOTE_REJECTION: lambda target: [user_capacity_key(target.user_id)],
}


def keys_for_mutation(kind: MutationKind, *, project_id: int, user_id: int) -> list[CacheKey]:
    return INVALIDATION_RULES[kind](MutationTarget(project_id=project_id, user_id=user_id))
