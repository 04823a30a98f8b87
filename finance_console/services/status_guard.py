"""
Status transition guard.

One lookup table per entity type. Every status change in the
system (profile suspend/reactivate/complete, loan approvals and
rejections) is checked here and nowhere else.
"""

import logging

from finance_console.errors import InvalidStateTransition
from finance_console.models.enums import (
    ApprovalStatus,
    EntityType,
    ProfileStatus,
)

logger = logging.getLogger(__name__)


PROFILE_TRANSITIONS: dict[ProfileStatus, set[ProfileStatus]] = {
    ProfileStatus.ACTIVE: {ProfileStatus.SUSPENDED, ProfileStatus.COMPLETED},
    ProfileStatus.SUSPENDED: {ProfileStatus.ACTIVE, ProfileStatus.COMPLETED},
    ProfileStatus.COMPLETED: set(),  # Terminal state
}

APPROVAL_TRANSITIONS: dict[ApprovalStatus, set[ApprovalStatus]] = {
    ApprovalStatus.PENDING: {
        ApprovalStatus.APPROVED_MANAGER,
        ApprovalStatus.REJECTED,
    },
    ApprovalStatus.APPROVED_MANAGER: {
        ApprovalStatus.APPROVED_ADMIN,
        ApprovalStatus.REJECTED,
    },
    ApprovalStatus.APPROVED_ADMIN: set(),
    ApprovalStatus.REJECTED: set(),
}

VALID_TRANSITIONS: dict[EntityType, dict] = {
    EntityType.GARNISHMENT_PROFILE: PROFILE_TRANSITIONS,
    EntityType.LOAN_WITHDRAWAL: APPROVAL_TRANSITIONS,
    EntityType.LOAN_REQUEST: APPROVAL_TRANSITIONS,
}


def can_transition(entity_type: EntityType, current, target) -> bool:
    """Check if moving from current to target is allowed."""
    table = VALID_TRANSITIONS[entity_type]
    return target in table.get(current, set())


def is_terminal(entity_type: EntityType, status) -> bool:
    return not VALID_TRANSITIONS[entity_type].get(status)


def ensure_transition(entity_type: EntityType, current, target) -> None:
    """Raise InvalidStateTransition unless the move is allowed."""
    if can_transition(entity_type, current, target):
        return

    logger.warning(
        "Rejected %s transition %s -> %s",
        entity_type.value, current.value, target.value,
    )
    if is_terminal(entity_type, current):
        raise InvalidStateTransition(
            f"Cannot change status of a {current.value} "
            f"{entity_type.value.replace('_', ' ')}"
        )
    raise InvalidStateTransition(
        f"Cannot transition {entity_type.value.replace('_', ' ')} "
        f"from {current.value} to {target.value}"
    )
