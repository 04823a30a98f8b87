"""
Tests for the status transition guard.
"""

import pytest

from finance_console.errors import InvalidStateTransition
from finance_console.models.enums import ApprovalStatus, EntityType, ProfileStatus
from finance_console.services.status_guard import (
    can_transition,
    ensure_transition,
    is_terminal,
)

PROFILE = EntityType.GARNISHMENT_PROFILE


class TestProfileTransitions:

    @pytest.mark.parametrize("current, target", [
        (ProfileStatus.ACTIVE, ProfileStatus.SUSPENDED),
        (ProfileStatus.ACTIVE, ProfileStatus.COMPLETED),
        (ProfileStatus.SUSPENDED, ProfileStatus.ACTIVE),
        (ProfileStatus.SUSPENDED, ProfileStatus.COMPLETED),
    ])
    def test_allowed(self, current, target):
        assert can_transition(PROFILE, current, target)
        ensure_transition(PROFILE, current, target)

    @pytest.mark.parametrize("target", list(ProfileStatus))
    def test_completed_is_terminal(self, target):
        assert is_terminal(PROFILE, ProfileStatus.COMPLETED)
        with pytest.raises(InvalidStateTransition, match="completed"):
            ensure_transition(PROFILE, ProfileStatus.COMPLETED, target)

    def test_same_status_is_not_a_transition(self):
        assert not can_transition(PROFILE, ProfileStatus.ACTIVE, ProfileStatus.ACTIVE)
        with pytest.raises(InvalidStateTransition, match="from active to active"):
            ensure_transition(PROFILE, ProfileStatus.ACTIVE, ProfileStatus.ACTIVE)


class TestApprovalTransitions:

    @pytest.mark.parametrize("entity_type", [
        EntityType.LOAN_WITHDRAWAL, EntityType.LOAN_REQUEST,
    ])
    def test_approval_chain(self, entity_type):
        assert can_transition(
            entity_type, ApprovalStatus.PENDING, ApprovalStatus.APPROVED_MANAGER
        )
        assert can_transition(
            entity_type, ApprovalStatus.APPROVED_MANAGER, ApprovalStatus.APPROVED_ADMIN
        )
        assert can_transition(
            entity_type, ApprovalStatus.APPROVED_MANAGER, ApprovalStatus.REJECTED
        )

    def test_admin_approval_cannot_skip_manager(self):
        assert not can_transition(
            EntityType.LOAN_WITHDRAWAL,
            ApprovalStatus.PENDING,
            ApprovalStatus.APPROVED_ADMIN,
        )

    @pytest.mark.parametrize("status", [
        ApprovalStatus.APPROVED_ADMIN, ApprovalStatus.REJECTED,
    ])
    def test_final_states_are_terminal(self, status):
        assert is_terminal(EntityType.LOAN_REQUEST, status)
        with pytest.raises(InvalidStateTransition):
            ensure_transition(
                EntityType.LOAN_REQUEST, status, ApprovalStatus.PENDING
            )
