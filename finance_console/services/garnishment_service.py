"""
Garnishment service: the reconciliation engine.

This service keeps every garnishment profile consistent with its
installments:

1. amount_paid_so_far is always the sum of the profile's installments
2. balance_remaining is always total_amount_owed - amount_paid_so_far
3. No installment may drive the balance below zero
4. A completed profile accepts no installments and no status change
5. Installment numbers run 1..N per profile in commit order

Balances are never trusted from the profile row when validating a
new payment. Each mutation re-reads the profile and its installments
inside a serialized unit of work, validates against that, writes the
installment, recomputes the profile, and appends the audit entries.
All of it commits together or not at all.

Unlike the read helpers, every mutating method here commits its own
transaction, because a lost race has to be retried from a clean
session state.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.errors import DomainError, NotFoundError, ValidationError
from finance_console.models.bulk_payment_batch import BulkPaymentBatch
from finance_console.models.collection_agency import CollectionAgency
from finance_console.models.employee import Employee
from finance_console.models.enums import EntityType, Permission, ProfileStatus
from finance_console.models.garnishment_document import GarnishmentDocument
from finance_console.models.garnishment_installment import GarnishmentInstallment
from finance_console.models.garnishment_profile import GarnishmentProfile
from finance_console.schemas.garnishment import (
    BulkPaymentEntry,
    BulkPaymentOutcome,
    BulkPaymentRequest,
    BulkPaymentResponse,
    DocumentAttach,
    InstallmentCreate,
    InstallmentUpdate,
    ProfileCreate,
    ProfileStatusUpdate,
)
from finance_console.security import Principal
from finance_console.services.audit_service import AuditService, snapshot
from finance_console.services.ledger_aggregator import ZERO, to_money, total
from finance_console.services.status_guard import ensure_transition
from finance_console.services.unit_of_work import run_unit_of_work

logger = logging.getLogger(__name__)


PROFILE_TABLE = "garnishment_profiles"
INSTALLMENT_TABLE = "garnishment_installments"

PROFILE_FIELDS = [
    "case_number", "employee_id", "creditor", "court_district", "law_firm",
    "collection_agency_id", "total_amount_owed", "amount_paid_so_far",
    "balance_remaining", "status", "next_due_date", "notes",
]
BALANCE_FIELDS = ["amount_paid_so_far", "balance_remaining"]
INSTALLMENT_FIELDS = [
    "profile_id", "installment_number", "amount", "payroll_date",
    "check_number", "notes", "batch_id",
]


def _profile_key(profile_id: int) -> tuple[str, int]:
    return ("garnishment_profile", profile_id)


class GarnishmentService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    # --- Reads ---

    async def get_profile(self, profile_id: int) -> GarnishmentProfile:
        profile = await self.db.get(GarnishmentProfile, profile_id)
        if not profile:
            raise NotFoundError(f"Garnishment profile {profile_id} not found")
        return profile

    async def list_profiles(
        self,
        status: ProfileStatus | None = None,
        employee_id: int | None = None,
    ) -> list[GarnishmentProfile]:
        """Profiles, newest first."""
        query = select(GarnishmentProfile)
        if status is not None:
            query = query.where(GarnishmentProfile.status == status)
        if employee_id is not None:
            query = query.where(GarnishmentProfile.employee_id == employee_id)
        result = await self.db.execute(
            query.order_by(
                GarnishmentProfile.created_at.desc(),
                GarnishmentProfile.id.desc(),
            )
        )
        return list(result.scalars().all())

    async def get_installment(
        self, installment_id: int
    ) -> GarnishmentInstallment:
        result = await self.db.execute(
            select(GarnishmentInstallment)
            .where(GarnishmentInstallment.id == installment_id)
            .execution_options(populate_existing=True)
        )
        installment = result.scalar_one_or_none()
        if not installment:
            raise NotFoundError(f"Installment {installment_id} not found")
        return installment

    async def list_installments(
        self, profile_id: int
    ) -> list[GarnishmentInstallment]:
        """Installments of a profile in installment-number order."""
        await self.get_profile(profile_id)
        return await self._installments(profile_id)

    async def list_documents(
        self, profile_id: int
    ) -> list[GarnishmentDocument]:
        await self.get_profile(profile_id)
        result = await self.db.execute(
            select(GarnishmentDocument)
            .where(GarnishmentDocument.profile_id == profile_id)
            .order_by(GarnishmentDocument.uploaded_at.desc())
        )
        return list(result.scalars().all())

    # --- Internal helpers ---

    async def _lock_profile(self, profile_id: int) -> GarnishmentProfile:
        """
        Re-read a profile from the database, locking its row.

        populate_existing discards whatever this session had cached,
        so validation always sees the committed state.
        """
        result = await self.db.execute(
            select(GarnishmentProfile)
            .where(GarnishmentProfile.id == profile_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        profile = result.scalar_one_or_none()
        if not profile:
            raise NotFoundError(f"Garnishment profile {profile_id} not found")
        return profile

    async def _installments(
        self, profile_id: int
    ) -> list[GarnishmentInstallment]:
        result = await self.db.execute(
            select(GarnishmentInstallment)
            .where(GarnishmentInstallment.profile_id == profile_id)
            .order_by(GarnishmentInstallment.installment_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    def _apply_totals(
        profile: GarnishmentProfile,
        installments: list[GarnishmentInstallment],
    ) -> None:
        """Derive paid and balance from the installment rows."""
        paid = total(i.amount for i in installments)
        balance = to_money(profile.total_amount_owed) - paid
        if balance < ZERO:
            raise ValidationError(
                f"Installments on case {profile.case_number} would exceed "
                f"the total owed of {profile.total_amount_owed}"
            )
        profile.amount_paid_so_far = paid
        profile.balance_remaining = balance
        profile.updated_at = datetime.utcnow()

    @staticmethod
    def _ensure_open(profile: GarnishmentProfile, verb: str) -> None:
        if profile.status == ProfileStatus.COMPLETED:
            raise ValidationError(
                f"Cannot {verb} on completed garnishment "
                f"{profile.case_number}"
            )

    # --- Profiles ---

    async def create_profile(
        self, request: ProfileCreate, actor: Principal
    ) -> GarnishmentProfile:
        """
        Open a garnishment case.

        The profile starts active with nothing paid and the whole
        amount owed as its balance.
        """
        actor.require(Permission.EDIT_TRANSACTIONS)

        if not request.case_number:
            raise ValidationError("Case number is required and cannot be empty.")
        if not request.creditor:
            raise ValidationError("Creditor name is required and cannot be empty.")

        async def work():
            employee = await self.db.get(Employee, request.employee_id)
            if not employee:
                raise NotFoundError(f"Employee {request.employee_id} not found")

            if request.collection_agency_id is not None:
                agency = await self.db.get(
                    CollectionAgency, request.collection_agency_id
                )
                if not agency:
                    raise NotFoundError(
                        f"Collection agency {request.collection_agency_id} not found"
                    )
                if not agency.active:
                    raise ValidationError(
                        f"Collection agency \"{agency.name}\" is no longer active"
                    )

            existing = await self.db.execute(
                select(GarnishmentProfile.id).where(
                    GarnishmentProfile.case_number == request.case_number
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise ValidationError(
                    f'Case number "{request.case_number}" already exists. '
                    f"Please use a unique case number."
                )

            owed = to_money(request.total_amount_owed)
            profile = GarnishmentProfile(
                case_number=request.case_number,
                employee_id=employee.id,
                creditor=request.creditor,
                court_district=request.court_district,
                law_firm=request.law_firm,
                collection_agency_id=request.collection_agency_id,
                total_amount_owed=owed,
                amount_paid_so_far=ZERO,
                balance_remaining=owed,
                status=ProfileStatus.ACTIVE,
                next_due_date=request.next_due_date,
                notes=request.notes,
                created_by=actor.id,
            )
            self.db.add(profile)
            await self.db.flush()

            await self.audit.record(
                "PROFILE_CREATE", PROFILE_TABLE, profile.id,
                None, snapshot(profile, PROFILE_FIELDS), actor,
            )
            return profile

        profile = await run_unit_of_work(
            self.db, ("case_number", request.case_number), work
        )
        logger.info(
            "Created garnishment profile %s (case %s, owed %s)",
            profile.id, profile.case_number, profile.total_amount_owed,
        )
        return profile

    async def change_profile_status(
        self,
        profile_id: int,
        request: ProfileStatusUpdate,
        actor: Principal,
    ) -> GarnishmentProfile:
        """
        Suspend, reactivate, or complete a profile.

        The transition guard decides legality. completed is terminal.
        """
        actor.require(Permission.EDIT_TRANSACTIONS)

        async def work():
            profile = await self._lock_profile(profile_id)
            old_status = profile.status
            ensure_transition(
                EntityType.GARNISHMENT_PROFILE, old_status, request.new_status
            )

            profile.status = request.new_status
            profile.updated_at = datetime.utcnow()
            await self.db.flush()

            await self.audit.record(
                "MANUAL_STATUS_CHANGE", PROFILE_TABLE, profile.id,
                {"status": old_status},
                {"status": request.new_status, "reason": request.reason},
                actor,
            )
            return profile

        profile = await run_unit_of_work(self.db, _profile_key(profile_id), work)
        logger.info(
            "Garnishment profile %s is now %s", profile.id, profile.status.value
        )
        return profile

    async def delete_profile(self, profile_id: int, actor: Principal) -> None:
        """
        Remove a profile with its installments and document references.

        Administrative correction only. Other profiles are untouched.
        """
        actor.require(Permission.DELETE_RECORDS)

        async def work():
            profile = await self._lock_profile(profile_id)
            removed = snapshot(profile, PROFILE_FIELDS)

            await self.db.execute(
                delete(GarnishmentDocument)
                .where(GarnishmentDocument.profile_id == profile.id)
            )
            await self.db.execute(
                delete(GarnishmentInstallment)
                .where(GarnishmentInstallment.profile_id == profile.id)
            )
            await self.db.delete(profile)
            await self.db.flush()

            await self.audit.record(
                "PROFILE_DELETE", PROFILE_TABLE, profile_id,
                removed, None, actor,
            )

        await run_unit_of_work(self.db, _profile_key(profile_id), work)
        logger.info("Deleted garnishment profile %s", profile_id)

    async def reconcile_profile(
        self, profile_id: int, actor: Principal
    ) -> GarnishmentProfile:
        """
        Recompute paid and balance from the installment rows.

        Repairs a profile whose stored totals drifted, for instance
        after a manual database edit. The repair is audited.
        """
        actor.require(Permission.EDIT_TRANSACTIONS)

        async def work():
            profile = await self._lock_profile(profile_id)
            before = snapshot(profile, BALANCE_FIELDS)
            installments = await self._installments(profile.id)
            paid = total(i.amount for i in installments)
            if (
                to_money(profile.amount_paid_so_far) == paid
                and to_money(profile.balance_remaining)
                == to_money(profile.total_amount_owed) - paid
            ):
                return profile

            logger.warning(
                "Profile %s totals drifted (%s); reconciling",
                profile.id, before,
            )
            self._apply_totals(profile, installments)
            await self.db.flush()
            await self.audit.record(
                "PROFILE_RECONCILE", PROFILE_TABLE, profile.id,
                before, snapshot(profile, BALANCE_FIELDS), actor,
            )
            return profile

        return await run_unit_of_work(self.db, _profile_key(profile_id), work)

    # --- Installments ---

    async def create_installment(
        self,
        profile_id: int,
        request: InstallmentCreate,
        actor: Principal,
        batch_id: int | None = None,
    ) -> GarnishmentInstallment:
        """
        Record a payment against a profile.

        Rejected with ValidationError when the profile is completed,
        the amount exceeds the recomputed balance, or another
        installment already carries the same payroll date.
        """
        actor.require(Permission.EDIT_TRANSACTIONS)

        async def work():
            profile = await self._lock_profile(profile_id)
            self._ensure_open(profile, "record installments")

            installments = await self._installments(profile.id)
            paid = total(i.amount for i in installments)
            balance = to_money(profile.total_amount_owed) - paid
            amount = to_money(request.amount)

            if amount <= ZERO:
                raise ValidationError("Amount must be greater than 0")
            if amount > balance:
                raise ValidationError(
                    f"Payment amount cannot exceed remaining balance "
                    f"of ${balance}."
                )
            if any(i.payroll_date == request.payroll_date for i in installments):
                raise ValidationError(
                    f"An installment for payroll date "
                    f"{request.payroll_date.isoformat()} is already recorded "
                    f"on case {profile.case_number}"
                )

            before = snapshot(profile, BALANCE_FIELDS)
            installment = GarnishmentInstallment(
                profile_id=profile.id,
                employee_id=profile.employee_id,
                batch_id=batch_id,
                amount=amount,
                payroll_date=request.payroll_date,
                installment_number=len(installments) + 1,
                check_number=request.check_number,
                notes=request.notes,
                recorded_by=actor.id,
                recorded_by_name=actor.name,
            )
            self.db.add(installment)
            self._apply_totals(profile, installments + [installment])
            await self.db.flush()

            await self.audit.record(
                "INSTALLMENT_CREATE", INSTALLMENT_TABLE, installment.id,
                None, snapshot(installment, INSTALLMENT_FIELDS), actor,
            )
            await self.audit.record(
                "PROFILE_BALANCE_UPDATE", PROFILE_TABLE, profile.id,
                before, snapshot(profile, BALANCE_FIELDS), actor,
            )
            return installment

        installment = await run_unit_of_work(
            self.db, _profile_key(profile_id), work
        )
        logger.info(
            "Recorded installment #%s of %s on profile %s",
            installment.installment_number, installment.amount, profile_id,
        )
        return installment

    async def update_installment(
        self,
        installment_id: int,
        request: InstallmentUpdate,
        actor: Principal,
    ) -> GarnishmentInstallment:
        """
        Correct a recorded installment.

        The new amount is validated against the freshly recomputed
        balance: balance - (new amount - old amount) must stay >= 0.
        """
        actor.require(Permission.EDIT_TRANSACTIONS)
        changes = request.model_dump(exclude_unset=True)

        async def work():
            installment = await self.get_installment(installment_id)
            profile = await self._lock_profile(installment.profile_id)
            self._ensure_open(profile, "edit installments")

            installments = await self._installments(profile.id)
            paid = total(i.amount for i in installments)
            balance = to_money(profile.total_amount_owed) - paid
            new_amount = to_money(request.amount)
            old_amount = to_money(installment.amount)

            if balance - (new_amount - old_amount) < ZERO:
                raise ValidationError(
                    "This amount would exceed the total owed amount"
                )

            new_date = changes.get("payroll_date")
            if new_date is not None and new_date != installment.payroll_date:
                if any(
                    i.payroll_date == new_date
                    for i in installments if i.id != installment.id
                ):
                    raise ValidationError(
                        f"An installment for payroll date "
                        f"{new_date.isoformat()} is already recorded "
                        f"on case {profile.case_number}"
                    )

            old_installment = snapshot(installment, INSTALLMENT_FIELDS)
            before = snapshot(profile, BALANCE_FIELDS)

            installment.amount = new_amount
            if new_date is not None:
                installment.payroll_date = new_date
            if "check_number" in changes:
                installment.check_number = changes["check_number"]
            if "notes" in changes:
                installment.notes = changes["notes"]
            installment.updated_at = datetime.utcnow()

            # The list holds this same instance, so the new amount is summed
            self._apply_totals(profile, installments)
            await self.db.flush()

            await self.audit.record(
                "INSTALLMENT_UPDATE", INSTALLMENT_TABLE, installment.id,
                old_installment, snapshot(installment, INSTALLMENT_FIELDS),
                actor,
            )
            await self.audit.record(
                "PROFILE_BALANCE_UPDATE", PROFILE_TABLE, profile.id,
                before, snapshot(profile, BALANCE_FIELDS), actor,
            )
            return installment

        # Serialize on the owning profile, found before taking the lock
        owner = await self.get_installment(installment_id)
        installment = await run_unit_of_work(
            self.db, _profile_key(owner.profile_id), work
        )
        logger.info(
            "Updated installment %s on profile %s",
            installment.id, installment.profile_id,
        )
        return installment

    # --- Bulk payments ---

    async def _active_profiles_by_employee_name(
        self,
    ) -> dict[str, GarnishmentProfile]:
        """Oldest active profile with a balance, keyed by lowercase name."""
        result = await self.db.execute(
            select(GarnishmentProfile, Employee.name)
            .join(Employee, Employee.id == GarnishmentProfile.employee_id)
            .where(GarnishmentProfile.status == ProfileStatus.ACTIVE)
            .order_by(GarnishmentProfile.created_at, GarnishmentProfile.id)
        )
        profiles: dict[str, GarnishmentProfile] = {}
        for profile, name in result.all():
            if to_money(profile.balance_remaining) <= ZERO:
                continue
            profiles.setdefault(name.strip().lower(), profile)
        return profiles

    async def process_bulk_payments(
        self, request: BulkPaymentRequest, actor: Principal
    ) -> BulkPaymentResponse:
        """
        Apply one payroll run's garnishment payments.

        Each entry is matched to an active profile by employee name and
        applied as its own unit of work, so one bad row never blocks
        the others. The batch records the totals actually applied, and a
        run that applies nothing leaves no batch behind.
        """
        actor.require(Permission.EDIT_TRANSACTIONS)

        profiles = await self._active_profiles_by_employee_name()
        outcomes: list[BulkPaymentOutcome] = []
        matched: list[tuple[BulkPaymentOutcome, BulkPaymentEntry]] = []

        for entry in request.entries:
            outcome = BulkPaymentOutcome(
                employee_name=entry.employee_name, amount=entry.amount
            )
            outcomes.append(outcome)
            profile = profiles.get(entry.employee_name.strip().lower())
            if profile is None:
                outcome.error = "No active garnishment profile found"
            elif entry.amount <= ZERO:
                outcome.error = "Amount must be greater than 0"
            else:
                outcome.profile_id = profile.id
                matched.append((outcome, entry))

        if not matched:
            return BulkPaymentResponse(
                batch_id=None,
                total_amount=ZERO,
                total_payments=0,
                outcomes=outcomes,
            )

        async def open_batch():
            batch = BulkPaymentBatch(
                batch_date=request.payroll_date,
                notes=request.notes,
                created_by_name=actor.name,
            )
            self.db.add(batch)
            await self.db.flush()
            return batch

        batch = await run_unit_of_work(self.db, ("bulk_payment_batch",), open_batch)
        # A failed entry rolls the session back and expires loaded rows
        batch_id = batch.id

        for outcome, entry in matched:
            try:
                installment = await self.create_installment(
                    outcome.profile_id,
                    InstallmentCreate(
                        amount=entry.amount,
                        payroll_date=request.payroll_date,
                        check_number=entry.check_number,
                        notes=entry.notes,
                    ),
                    actor,
                    batch_id=batch_id,
                )
                outcome.installment_id = installment.id
            except DomainError as e:
                outcome.error = e.message

        applied = [o for o in outcomes if o.applied]

        if not applied:
            async def discard_batch():
                result = await self.db.execute(
                    select(BulkPaymentBatch).where(BulkPaymentBatch.id == batch_id)
                )
                await self.db.delete(result.scalar_one())
                await self.db.flush()

            await run_unit_of_work(
                self.db, ("bulk_payment_batch",), discard_batch
            )
            logger.info(
                "Bulk run on %s applied none of %s payments",
                request.payroll_date, len(outcomes),
            )
            return BulkPaymentResponse(
                batch_id=None,
                total_amount=ZERO,
                total_payments=0,
                outcomes=outcomes,
            )

        async def close_batch():
            result = await self.db.execute(
                select(BulkPaymentBatch)
                .where(BulkPaymentBatch.id == batch_id)
                .execution_options(populate_existing=True)
            )
            current = result.scalar_one()
            current.total_amount = total(o.amount for o in applied)
            current.total_payments = len(applied)
            await self.db.flush()
            await self.audit.record(
                "BULK_PAYMENT_BATCH_CREATE", "bulk_payment_batches", current.id,
                None,
                {
                    "batch_date": current.batch_date,
                    "total_amount": current.total_amount,
                    "total_payments": current.total_payments,
                    "notes": current.notes,
                },
                actor,
            )
            return current

        batch = await run_unit_of_work(self.db, ("bulk_payment_batch",), close_batch)
        logger.info(
            "Bulk batch %s applied %s of %s payments (%s)",
            batch.id, batch.total_payments, len(outcomes), batch.total_amount,
        )
        return BulkPaymentResponse(
            batch_id=batch.id,
            total_amount=batch.total_amount,
            total_payments=batch.total_payments,
            outcomes=outcomes,
        )

    # --- Documents ---

    async def attach_document(
        self,
        profile_id: int,
        request: DocumentAttach,
        actor: Principal,
    ) -> GarnishmentDocument:
        """Record the object-storage reference of a supporting document."""
        actor.require(Permission.EDIT_TRANSACTIONS)

        async def work():
            profile = await self._lock_profile(profile_id)
            if request.installment_id is not None:
                installment = await self.get_installment(request.installment_id)
                if installment.profile_id != profile.id:
                    raise ValidationError(
                        f"Installment {installment.id} does not belong to "
                        f"case {profile.case_number}"
                    )

            document = GarnishmentDocument(
                profile_id=profile.id,
                installment_id=request.installment_id,
                storage_path=request.storage_path,
                file_name=request.file_name,
                file_type=request.file_type,
                file_size=request.file_size,
                description=request.description,
                uploaded_by=actor.id,
            )
            self.db.add(document)
            await self.db.flush()
            await self.audit.record(
                "DOCUMENT_ATTACH", "garnishment_documents", document.id,
                None,
                {
                    "profile_id": profile.id,
                    "installment_id": request.installment_id,
                    "file_name": request.file_name,
                    "storage_path": request.storage_path,
                },
                actor,
            )
            return document

        return await run_unit_of_work(self.db, _profile_key(profile_id), work)
