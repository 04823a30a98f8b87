"""
Tests for the GarnishmentService.

Tests cover:
- Profile creation and its validation messages
- Installment recording, numbering and the no-overdraw rule
- The duplicate payroll date guard, also under concurrent submission
- Concurrent writers held back by database constraints alone
- Installment correction
- Status changes and the terminal completed state
- Bulk payroll payments
- Profile deletion, reconciliation and the audit trail
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from finance_console.errors import (
    InvalidStateTransition,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from finance_console.models import AuditLog, BulkPaymentBatch, GarnishmentInstallment
from finance_console.models.enums import ProfileStatus
from finance_console.schemas.garnishment import (
    BulkPaymentEntry,
    BulkPaymentRequest,
    DocumentAttach,
    InstallmentCreate,
    InstallmentUpdate,
    ProfileCreate,
    ProfileStatusUpdate,
)
from finance_console.services import unit_of_work
from finance_console.services.audit_service import AuditService
from finance_console.services.garnishment_service import GarnishmentService


# --- Helpers ---

async def open_profile(db, actor, employee_id, owed="1000.00", case="CASE-001"):
    """Open an active profile and return its id."""
    profile = await GarnishmentService(db).create_profile(ProfileCreate(
        case_number=case,
        employee_id=employee_id,
        creditor="Acme Credit",
        court_district="District 4",
        law_firm="Smith & Partners",
        total_amount_owed=Decimal(owed),
    ), actor)
    return profile.id


def payment(amount, day, check_number=None):
    return InstallmentCreate(
        amount=Decimal(amount),
        payroll_date=date(2024, 1, day),
        check_number=check_number,
    )


# --- Profile Creation Tests ---

class TestCreateProfile:

    async def test_new_profile_owes_everything(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        service = GarnishmentService(db_session)

        profile = await service.get_profile(
            await open_profile(db_session, manager, employee_id)
        )

        assert profile.status == ProfileStatus.ACTIVE
        assert profile.amount_paid_so_far == Decimal("0.00")
        assert profile.balance_remaining == Decimal("1000.00")
        assert profile.created_by == manager.id

    async def test_blank_case_number_rejected(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        with pytest.raises(ValidationError, match="Case number is required"):
            await open_profile(db_session, manager, employee_id, case="   ")

    async def test_duplicate_case_number_rejected(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        await open_profile(db_session, manager, employee_id)

        with pytest.raises(ValidationError) as exc:
            await open_profile(db_session, manager, employee_id)
        assert exc.value.message == (
            'Case number "CASE-001" already exists. '
            "Please use a unique case number."
        )

    async def test_unknown_employee_rejected(self, db_session, manager):
        with pytest.raises(NotFoundError):
            await open_profile(db_session, manager, 999)

    async def test_view_only_user_cannot_create(self, db_session, staff, make_employee):
        employee_id = await make_employee()
        with pytest.raises(PermissionDenied):
            await open_profile(db_session, staff, employee_id)


# --- Installment Tests ---

class TestCreateInstallment:

    async def test_payment_scenario(self, db_session, manager, make_employee):
        """Owed 1000: pay 300, refuse 800, pay 700, then nothing is left."""
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)

        await service.create_installment(profile_id, payment("300.00", 5), manager)
        profile = await service.get_profile(profile_id)
        assert profile.amount_paid_so_far == Decimal("300.00")
        assert profile.balance_remaining == Decimal("700.00")

        with pytest.raises(ValidationError) as exc:
            await service.create_installment(profile_id, payment("800.00", 12), manager)
        assert exc.value.message == (
            "Payment amount cannot exceed remaining balance of $700.00."
        )

        await service.create_installment(profile_id, payment("700.00", 19), manager)
        profile = await service.get_profile(profile_id)
        assert profile.amount_paid_so_far == Decimal("1000.00")
        assert profile.balance_remaining == Decimal("0.00")

    async def test_numbers_are_sequential(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)

        for day in (5, 12, 19):
            await service.create_installment(profile_id, payment("100.00", day), manager)

        installments = await service.list_installments(profile_id)
        assert [i.installment_number for i in installments] == [1, 2, 3]

    async def test_rejected_payment_does_not_consume_a_number(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id, owed="200.00")
        service = GarnishmentService(db_session)

        await service.create_installment(profile_id, payment("100.00", 5), manager)
        with pytest.raises(ValidationError):
            await service.create_installment(profile_id, payment("500.00", 12), manager)
        second = await service.create_installment(
            profile_id, payment("100.00", 19), manager
        )

        assert second.installment_number == 2

    async def test_duplicate_payroll_date_rejected(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)

        await service.create_installment(profile_id, payment("100.00", 5), manager)
        with pytest.raises(ValidationError, match="2024-01-05"):
            await service.create_installment(profile_id, payment("50.00", 5), manager)

        installments = await service.list_installments(profile_id)
        assert len(installments) == 1

    async def test_same_date_on_other_profile_is_fine(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        first = await open_profile(db_session, manager, employee_id, case="A-1")
        second = await open_profile(db_session, manager, employee_id, case="A-2")
        service = GarnishmentService(db_session)

        await service.create_installment(first, payment("100.00", 5), manager)
        installment = await service.create_installment(second, payment("100.00", 5), manager)

        assert installment.installment_number == 1

    async def test_completed_profile_refuses_payments(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        await service.change_profile_status(profile_id, ProfileStatusUpdate(
            new_status=ProfileStatus.COMPLETED, reason="Settled",
        ), manager)

        with pytest.raises(ValidationError, match="completed"):
            await service.create_installment(profile_id, payment("100.00", 5), manager)

    async def test_suspended_profile_accepts_payments(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        await service.change_profile_status(profile_id, ProfileStatusUpdate(
            new_status=ProfileStatus.SUSPENDED, reason="On leave",
        ), manager)

        installment = await service.create_installment(
            profile_id, payment("100.00", 5), manager
        )
        assert installment.installment_number == 1

    async def test_unknown_profile(self, db_session, manager):
        with pytest.raises(NotFoundError):
            await GarnishmentService(db_session).create_installment(
                42, payment("10.00", 5), manager
            )

    async def test_installment_records_who_and_which_employee(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)

        installment = await GarnishmentService(db_session).create_installment(
            profile_id, payment("25.00", 5, check_number="CHK-1"), manager
        )

        assert installment.employee_id == employee_id
        assert installment.recorded_by == manager.id
        assert installment.recorded_by_name == manager.name
        assert installment.check_number == "CHK-1"


class TestConcurrentInstallments:

    async def test_same_date_submitted_twice_at_once(
        self, session_factory, manager, make_employee
    ):
        employee_id = await make_employee()
        async with session_factory() as setup:
            profile_id = await open_profile(setup, manager, employee_id)

        async def submit():
            async with session_factory() as db:
                return await GarnishmentService(db).create_installment(
                    profile_id, payment("100.00", 5), manager
                )

        results = await asyncio.gather(submit(), submit(), return_exceptions=True)

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], ValidationError)
        async with session_factory() as db:
            profile = await GarnishmentService(db).get_profile(profile_id)
            assert profile.amount_paid_so_far == Decimal("100.00")

    async def test_concurrent_payments_never_overdraw(
        self, session_factory, manager, make_employee
    ):
        employee_id = await make_employee()
        async with session_factory() as setup:
            profile_id = await open_profile(setup, manager, employee_id)

        async def submit(day):
            async with session_factory() as db:
                return await GarnishmentService(db).create_installment(
                    profile_id, payment("600.00", day), manager
                )

        results = await asyncio.gather(submit(5), submit(12), return_exceptions=True)

        assert sum(isinstance(r, ValidationError) for r in results) == 1
        async with session_factory() as db:
            service = GarnishmentService(db)
            profile = await service.get_profile(profile_id)
            installments = await service.list_installments(profile_id)
            assert profile.balance_remaining == Decimal("400.00")
            assert [i.installment_number for i in installments] == [1]


class NoLock:
    """Stands in for the keyed lock of another process: holds nothing."""

    @asynccontextmanager
    async def hold(self, key):
        yield


@pytest.fixture
def interleaved_writers(monkeypatch):
    """
    Let two sessions validate against the same state before either writes.

    The in-process lock is removed and installment reads are delayed,
    so only the database constraints and the retry keep the ledger right.
    """
    monkeypatch.setattr(unit_of_work, "aggregate_locks", NoLock())
    original = GarnishmentService._installments

    async def slow_installments(self, profile_id, *args, **kwargs):
        rows = await original(self, profile_id, *args, **kwargs)
        await asyncio.sleep(0.05)
        return rows

    monkeypatch.setattr(GarnishmentService, "_installments", slow_installments)


class TestConcurrentInstallmentsWithoutProcessLock:

    async def test_overdraw_is_caught_by_the_database(
        self, session_factory, manager, make_employee, interleaved_writers
    ):
        employee_id = await make_employee()
        async with session_factory() as setup:
            profile_id = await open_profile(setup, manager, employee_id)

        async def submit(day):
            async with session_factory() as db:
                return await GarnishmentService(db).create_installment(
                    profile_id, payment("600.00", day), manager
                )

        results = await asyncio.gather(submit(5), submit(12), return_exceptions=True)

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], ValidationError)
        async with session_factory() as db:
            service = GarnishmentService(db)
            profile = await service.get_profile(profile_id)
            installments = await service.list_installments(profile_id)
            assert profile.amount_paid_so_far == Decimal("600.00")
            assert profile.balance_remaining == Decimal("400.00")
            assert len(installments) == 1

    async def test_same_date_is_caught_by_the_database(
        self, session_factory, manager, make_employee, interleaved_writers
    ):
        employee_id = await make_employee()
        async with session_factory() as setup:
            profile_id = await open_profile(setup, manager, employee_id)

        async def submit():
            async with session_factory() as db:
                return await GarnishmentService(db).create_installment(
                    profile_id, payment("100.00", 5), manager
                )

        results = await asyncio.gather(submit(), submit(), return_exceptions=True)

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], ValidationError)
        async with session_factory() as db:
            profile = await GarnishmentService(db).get_profile(profile_id)
            assert profile.amount_paid_so_far == Decimal("100.00")
            assert profile.balance_remaining == Decimal("900.00")


class TestUpdateInstallment:

    async def test_correction_recomputes_balance(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        installment = await service.create_installment(
            profile_id, payment("300.00", 5), manager
        )

        await service.update_installment(installment.id, InstallmentUpdate(
            amount=Decimal("250.00"), notes="Corrected from stub",
        ), manager)

        profile = await service.get_profile(profile_id)
        assert profile.amount_paid_so_far == Decimal("250.00")
        assert profile.balance_remaining == Decimal("750.00")

    async def test_correction_cannot_overdraw(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        first = await service.create_installment(profile_id, payment("300.00", 5), manager)
        first_id = first.id
        await service.create_installment(profile_id, payment("600.00", 12), manager)

        with pytest.raises(ValidationError, match="exceed the total owed"):
            await service.update_installment(first_id, InstallmentUpdate(
                amount=Decimal("500.00"),
            ), manager)

        profile = await service.get_profile(profile_id)
        assert profile.balance_remaining == Decimal("100.00")

    async def test_correction_to_taken_date_rejected(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        await service.create_installment(profile_id, payment("100.00", 5), manager)
        second = await service.create_installment(profile_id, payment("100.00", 12), manager)

        with pytest.raises(ValidationError, match="already recorded"):
            await service.update_installment(second.id, InstallmentUpdate(
                amount=Decimal("100.00"), payroll_date=date(2024, 1, 5),
            ), manager)

    async def test_unknown_installment(self, db_session, manager):
        with pytest.raises(NotFoundError):
            await GarnishmentService(db_session).update_installment(
                7, InstallmentUpdate(amount=Decimal("1.00")), manager
            )


# --- Status Tests ---

class TestChangeProfileStatus:

    async def test_suspend_and_reactivate(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)

        await service.change_profile_status(profile_id, ProfileStatusUpdate(
            new_status=ProfileStatus.SUSPENDED, reason="Employee on leave",
        ), manager)
        profile = await service.change_profile_status(profile_id, ProfileStatusUpdate(
            new_status=ProfileStatus.ACTIVE, reason="Back at work",
        ), manager)

        assert profile.status == ProfileStatus.ACTIVE

    async def test_completed_is_final(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        await service.change_profile_status(profile_id, ProfileStatusUpdate(
            new_status=ProfileStatus.COMPLETED, reason="Paid off",
        ), manager)

        with pytest.raises(InvalidStateTransition):
            await service.change_profile_status(profile_id, ProfileStatusUpdate(
                new_status=ProfileStatus.ACTIVE, reason="Reopen",
            ), manager)

        profile = await service.get_profile(profile_id)
        assert profile.status == ProfileStatus.COMPLETED

    async def test_status_change_is_audited_with_reason(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        await GarnishmentService(db_session).change_profile_status(
            profile_id,
            ProfileStatusUpdate(new_status=ProfileStatus.SUSPENDED, reason="Dispute"),
            manager,
        )

        entries = await AuditService(db_session).history(
            "garnishment_profiles", profile_id
        )
        change = entries[0]
        assert change.action == "MANUAL_STATUS_CHANGE"
        assert change.old_values == {"status": "active"}
        assert change.new_values == {"status": "suspended", "reason": "Dispute"}
        assert change.actor_name == manager.name


# --- Bulk Payment Tests ---

class TestBulkPayments:

    async def test_each_entry_is_applied_independently(
        self, db_session, manager, make_employee
    ):
        jane = await make_employee("Jane Doe")
        john = await make_employee("John Roe")
        jane_profile = await open_profile(db_session, manager, jane, case="J-1")
        john_profile = await open_profile(
            db_session, manager, john, owed="100.00", case="J-2"
        )
        service = GarnishmentService(db_session)

        response = await service.process_bulk_payments(BulkPaymentRequest(
            payroll_date=date(2024, 2, 2),
            entries=[
                BulkPaymentEntry(employee_name="jane doe", amount=Decimal("150.00")),
                BulkPaymentEntry(employee_name="John Roe", amount=Decimal("500.00")),
                BulkPaymentEntry(employee_name="Nobody", amount=Decimal("10.00")),
                BulkPaymentEntry(employee_name="John Roe", amount=Decimal("0.00")),
            ],
        ), manager)

        outcomes = response.outcomes
        assert outcomes[0].applied and outcomes[0].profile_id == jane_profile
        assert outcomes[1].profile_id == john_profile
        assert "cannot exceed remaining balance" in outcomes[1].error
        assert outcomes[2].error == "No active garnishment profile found"
        assert outcomes[3].error == "Amount must be greater than 0"

        assert response.batch_id is not None
        assert response.total_payments == 1
        assert response.total_amount == Decimal("150.00")

        installments = await service.list_installments(jane_profile)
        assert installments[0].batch_id == response.batch_id
        profile = await service.get_profile(jane_profile)
        assert profile.balance_remaining == Decimal("850.00")

    async def test_suspended_profiles_are_not_matched(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee("Jane Doe")
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        await service.change_profile_status(profile_id, ProfileStatusUpdate(
            new_status=ProfileStatus.SUSPENDED, reason="Hold",
        ), manager)

        response = await service.process_bulk_payments(BulkPaymentRequest(
            payroll_date=date(2024, 2, 2),
            entries=[BulkPaymentEntry(employee_name="Jane Doe", amount=Decimal("5.00"))],
        ), manager)

        assert response.batch_id is None
        assert response.total_payments == 0
        assert not response.outcomes[0].applied

    async def test_run_that_applies_nothing_leaves_no_batch(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee("Jane Doe")
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        await service.create_installment(
            profile_id,
            InstallmentCreate(amount=Decimal("50.00"), payroll_date=date(2024, 2, 2)),
            manager,
        )

        response = await service.process_bulk_payments(BulkPaymentRequest(
            payroll_date=date(2024, 2, 2),
            entries=[BulkPaymentEntry(employee_name="Jane Doe", amount=Decimal("25.00"))],
        ), manager)

        assert response.batch_id is None
        assert response.total_payments == 0
        assert response.total_amount == Decimal("0.00")
        assert "2024-02-02" in response.outcomes[0].error
        batches = await db_session.execute(select(BulkPaymentBatch))
        assert batches.scalars().all() == []


# --- Delete, Reconcile, Documents ---

class TestDeleteProfile:

    async def test_removes_profile_and_installments_only(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        doomed = await open_profile(db_session, manager, employee_id, case="D-1")
        kept = await open_profile(db_session, manager, employee_id, case="D-2")
        service = GarnishmentService(db_session)
        await service.create_installment(doomed, payment("10.00", 5), manager)
        await service.create_installment(kept, payment("20.00", 5), manager)

        await service.delete_profile(doomed, manager)

        with pytest.raises(NotFoundError):
            await service.get_profile(doomed)
        result = await db_session.execute(select(GarnishmentInstallment))
        remaining = result.scalars().all()
        assert [i.profile_id for i in remaining] == [kept]
        profile = await service.get_profile(kept)
        assert profile.amount_paid_so_far == Decimal("20.00")

        entries = await AuditService(db_session).history("garnishment_profiles", doomed)
        assert entries[0].action == "PROFILE_DELETE"
        assert entries[0].old_values["case_number"] == "D-1"
        assert entries[0].new_values is None

    async def test_requires_delete_permission(self, db_session, manager, staff, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)

        with pytest.raises(PermissionDenied):
            await GarnishmentService(db_session).delete_profile(profile_id, staff)


class TestReconcileProfile:

    async def test_repairs_drifted_totals(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        await service.create_installment(profile_id, payment("300.00", 5), manager)

        # Simulate a manual edit that broke the stored totals
        profile = await service.get_profile(profile_id)
        profile.amount_paid_so_far = Decimal("0.00")
        profile.balance_remaining = Decimal("1000.00")
        await db_session.commit()

        profile = await service.reconcile_profile(profile_id, manager)

        assert profile.amount_paid_so_far == Decimal("300.00")
        assert profile.balance_remaining == Decimal("700.00")
        entries = await AuditService(db_session).history("garnishment_profiles", profile_id)
        assert entries[0].action == "PROFILE_RECONCILE"

    async def test_consistent_profile_is_left_alone(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)

        await service.reconcile_profile(profile_id, manager)

        entries = await AuditService(db_session).history("garnishment_profiles", profile_id)
        assert [e.action for e in entries] == ["PROFILE_CREATE"]


class TestAttachDocument:

    async def test_document_reference_is_stored(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        service = GarnishmentService(db_session)
        installment = await service.create_installment(
            profile_id, payment("10.00", 5), manager
        )

        document = await service.attach_document(profile_id, DocumentAttach(
            installment_id=installment.id,
            storage_path="garnishments/CASE-001/check-1.pdf",
            file_name="check-1.pdf",
            file_type="application/pdf",
            file_size=2048,
        ), manager)

        documents = await service.list_documents(profile_id)
        assert [d.id for d in documents] == [document.id]
        assert documents[0].uploaded_by == manager.id

    async def test_installment_must_belong_to_profile(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        first = await open_profile(db_session, manager, employee_id, case="A-1")
        second = await open_profile(db_session, manager, employee_id, case="A-2")
        service = GarnishmentService(db_session)
        installment = await service.create_installment(first, payment("10.00", 5), manager)

        with pytest.raises(ValidationError, match="does not belong"):
            await service.attach_document(second, DocumentAttach(
                installment_id=installment.id,
                storage_path="x/y.pdf",
                file_name="y.pdf",
                file_type="application/pdf",
                file_size=1,
            ), manager)


class TestAuditTrail:

    async def test_installment_writes_two_entries(self, db_session, manager, make_employee):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id)
        installment = await GarnishmentService(db_session).create_installment(
            profile_id, payment("300.00", 5), manager
        )

        audit = AuditService(db_session)
        balance_entry = (await audit.history("garnishment_profiles", profile_id))[0]
        assert balance_entry.action == "PROFILE_BALANCE_UPDATE"
        assert balance_entry.new_values == {
            "amount_paid_so_far": "300.00",
            "balance_remaining": "700.00",
        }
        created = (await audit.history("garnishment_installments", installment.id))[0]
        assert created.action == "INSTALLMENT_CREATE"
        assert created.new_values["amount"] == "300.00"

    async def test_rejected_installment_leaves_no_entry(
        self, db_session, manager, make_employee
    ):
        employee_id = await make_employee()
        profile_id = await open_profile(db_session, manager, employee_id, owed="50.00")

        with pytest.raises(ValidationError):
            await GarnishmentService(db_session).create_installment(
                profile_id, payment("60.00", 5), manager
            )

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.table_name == "garnishment_installments")
        )
        assert result.scalars().all() == []
