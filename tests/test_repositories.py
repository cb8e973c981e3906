"""Tests for the ledger store repositories."""
from datetime import datetime, timezone
from itertools import count

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import (
    ConflictError,
    ImmutableFieldError,
    InvalidStatusTransitionError,
    NotFoundError,
)
from app.models.emi_plan import EMIPlan
from app.models.student import Student
from app.models.transaction import Transaction, TransactionStatus
from app.models.user import UserRole
from app.repositories.counter_repo import CounterRepository
from app.repositories.emi_plan_repo import EMIPlanRepository
from app.repositories.student_repo import StudentRepository
from app.repositories.transaction_repo import TransactionRepository
from app.repositories.user_repo import UserRepository

_receipt_sequence = count(1)


def _student(**overrides) -> Student:
    fields = dict(
        code="STU900",
        name="Ravi Kumar",
        email="ravi@example.com",
        course="Data Science",
        joined_date="01/03/2026",
        fee_offered=50000,
        down_payment=0,
        fees_paid=1000,
    )
    fields.update(overrides)
    return Student(**fields)


def _transaction(student: Student, **overrides) -> Transaction:
    fields = dict(
        student_id=student.id,
        student_name=student.name,
        amount=500,
        recorded_by="Office Admin",
        receipt_number=f"RCP-2699-{next(_receipt_sequence):05d}",
    )
    fields.update(overrides)
    return Transaction(**fields)


@pytest.mark.asyncio
class TestCounterRepository:
    async def test_next_value_starts_at_one_and_increments(self, test_db):
        counters = CounterRepository(test_db)

        assert await counters.next_value("receipt:RCP-2603") == 1
        assert await counters.next_value("receipt:RCP-2603") == 2
        assert await counters.next_value("receipt:RCP-2604") == 1

    async def test_ensure_at_least_never_lowers(self, test_db):
        counters = CounterRepository(test_db)
        await counters.ensure_at_least("student_code", 7)
        await counters.ensure_at_least("student_code", 3)

        assert await counters.current("student_code") == 7
        assert await counters.next_value("student_code") == 8


@pytest.mark.asyncio
class TestStudentRepository:
    async def test_resolve_by_internal_id_or_code(self, test_db):
        repo = StudentRepository(test_db)
        student = await repo.create(_student())

        by_id = await repo.resolve(str(student.id))
        by_code = await repo.resolve("STU900")

        assert by_id.id == student.id
        assert by_code.id == student.id
        assert await repo.resolve("STU404") is None
        assert await repo.resolve(str(ObjectId())) is None

    async def test_duplicate_email_rejected_by_index(self, test_db):
        repo = StudentRepository(test_db)
        await repo.create(_student())

        with pytest.raises(DuplicateKeyError):
            await repo.create(_student(code="STU901"))

    async def test_update_if_applies_when_precondition_holds(self, test_db):
        repo = StudentRepository(test_db)
        student = await repo.create(_student())

        updated = await repo.inc_fees_paid_if(student.id, 1000, 500)

        assert updated is not None
        assert updated.fees_paid == 1500

    async def test_update_if_rejects_stale_precondition(self, test_db):
        repo = StudentRepository(test_db)
        student = await repo.create(_student())
        await repo.inc_fees_paid_if(student.id, 1000, 500)

        stale = await repo.inc_fees_paid_if(student.id, 1000, 500)

        assert stale is None
        assert (await repo.get_by_id(student.id)).fees_paid == 1500

    async def test_update_if_with_arbitrary_predicate(self, test_db):
        repo = StudentRepository(test_db)
        student = await repo.create(_student())

        assert await repo.update_if(student.id, {"status": "Inactive"}, {"$set": {"course": "AI"}}) is None
        updated = await repo.update_if(student.id, {"status": "Active"}, {"$set": {"course": "AI"}})
        assert updated.course == "AI"

    async def test_highest_code_number(self, test_db):
        repo = StudentRepository(test_db)
        await repo.create(_student(code="STU004", email="a@example.com"))
        await repo.create(_student(code="STU012", email="b@example.com"))

        assert await repo.highest_code_number() == 12

    async def test_delete_returns_removed_student(self, test_db):
        repo = StudentRepository(test_db)
        student = await repo.create(_student())

        deleted = await repo.delete(student.id)

        assert deleted.code == "STU900"
        assert await repo.get_by_id(student.id) is None
        assert await repo.delete(student.id) is None


@pytest.mark.asyncio
class TestTransactionRepository:
    async def test_no_delete_operation(self, test_db):
        repo = TransactionRepository(test_db)

        assert not any(name.startswith("delete") for name in dir(repo))

    async def test_receipt_number_is_unique(self, test_db):
        repo = TransactionRepository(test_db)
        student = _student()
        await repo.insert(_transaction(student, receipt_number="RCP-2603-00001"))

        with pytest.raises(DuplicateKeyError):
            await repo.insert(_transaction(student, receipt_number="RCP-2603-00001"))

    async def test_highest_receipt_sequence_per_prefix(self, test_db):
        repo = TransactionRepository(test_db)
        student = _student()
        for number in ["RCP-2603-00002", "RCP-2603-00010", "RCP-2604-00099"]:
            await repo.insert(_transaction(student, receipt_number=number))

        assert await repo.highest_receipt_sequence("RCP-2603-") == 10
        assert await repo.highest_receipt_sequence("RCP-2605-") == 0

    async def test_completed_to_cancelled_appends_note(self, test_db):
        repo = TransactionRepository(test_db)
        entry = await repo.insert(_transaction(_student(), notes="paid at desk"))

        cancelled = await repo.transition_status(entry.id, TransactionStatus.CANCELLED, "duplicate entry")

        assert cancelled.status == TransactionStatus.CANCELLED
        assert cancelled.notes == "paid at desk\nduplicate entry"
        assert cancelled.amount == entry.amount

    @pytest.mark.parametrize("start,target", [
        (TransactionStatus.FAILED, TransactionStatus.COMPLETED),
        (TransactionStatus.CANCELLED, TransactionStatus.COMPLETED),
        (TransactionStatus.CANCELLED, TransactionStatus.FAILED),
        (TransactionStatus.COMPLETED, TransactionStatus.PENDING),
        (TransactionStatus.PENDING, TransactionStatus.COMPLETED),
        (TransactionStatus.PENDING, TransactionStatus.CANCELLED),
    ])
    async def test_disallowed_transitions(self, test_db, start, target):
        repo = TransactionRepository(test_db)
        entry = await repo.insert(_transaction(_student(), status=start))

        with pytest.raises(InvalidStatusTransitionError):
            await repo.transition_status(entry.id, target)

        assert (await repo.get(entry.id)).status == start

    async def test_pending_is_terminal(self, test_db):
        repo = TransactionRepository(test_db)
        entry = await repo.insert(_transaction(_student(), status=TransactionStatus.PENDING))

        for target in TransactionStatus:
            with pytest.raises(InvalidStatusTransitionError):
                await repo.transition_status(entry.id, target)

        assert (await repo.get(entry.id)).status == TransactionStatus.PENDING

    async def test_transition_missing_entry(self, test_db):
        repo = TransactionRepository(test_db)

        with pytest.raises(NotFoundError):
            await repo.transition_status(ObjectId(), TransactionStatus.CANCELLED)

    @pytest.mark.parametrize("field,value", [
        ("amount", 1),
        ("date", "2020-01-01"),
        ("type", "Debit"),
        ("payment_mode", "UPI"),
        ("student_id", "507f1f77bcf86cd799439011"),
        ("recorded_by", "someone else"),
        ("status", "Cancelled"),
    ])
    async def test_write_once_fields_rejected(self, test_db, field, value):
        repo = TransactionRepository(test_db)
        entry = await repo.insert(_transaction(_student()))

        with pytest.raises(ImmutableFieldError):
            await repo.update(entry.id, {field: value})

        stored = await repo.get(entry.id)
        assert stored.amount == 500
        assert stored.status == TransactionStatus.COMPLETED
        assert stored.recorded_by == "Office Admin"

    async def test_notes_are_editable(self, test_db):
        repo = TransactionRepository(test_db)
        entry = await repo.insert(_transaction(_student()))

        updated = await repo.update(entry.id, {"notes": "cheque no. 1182"})

        assert updated.notes == "cheque no. 1182"

    async def test_history_newest_first(self, test_db):
        repo = TransactionRepository(test_db)
        student = _student()
        older = await repo.insert(_transaction(
            student, receipt_number="RCP-2603-00001", date=datetime(2026, 3, 1, tzinfo=timezone.utc)
        ))
        newer = await repo.insert(_transaction(
            student, receipt_number="RCP-2603-00002", date=datetime(2026, 3, 5, tzinfo=timezone.utc)
        ))

        history = await repo.list_by_student(student.id)

        assert [t.id for t in history] == [newer.id, older.id]

    async def test_completed_credit_totals_ignore_other_statuses(self, test_db):
        repo = TransactionRepository(test_db)
        student = _student()
        await repo.insert(_transaction(student, receipt_number="RCP-2603-00001", amount=1000))
        await repo.insert(_transaction(student, receipt_number="RCP-2603-00002", amount=300,
                                       status=TransactionStatus.FAILED))
        await repo.insert(_transaction(student, receipt_number="RCP-2603-00003", amount=200,
                                       status=TransactionStatus.CANCELLED))

        totals = await repo.completed_credit_totals()

        assert totals == {student.id: 1000}


@pytest.mark.asyncio
class TestEMIPlanRepository:
    async def test_one_plan_per_student(self, test_db):
        repo = EMIPlanRepository(test_db)
        student_id = ObjectId()
        plan = dict(
            student_id=student_id,
            total_amount=50000,
            down_payment=10000,
            remaining_amount=40000,
            number_of_installments=4,
            start_date=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )
        await repo.create(EMIPlan(**plan))

        with pytest.raises(ConflictError):
            await repo.create(EMIPlan(**plan))

        assert (await repo.get_by_student(student_id)).remaining_amount == 40000
        assert await repo.delete_by_student(student_id) is True
        assert await repo.get_by_student(student_id) is None


@pytest.mark.asyncio
class TestUserRepository:
    async def test_create_user_hashes_password(self, test_db):
        repo = UserRepository(test_db)

        user = await repo.create_user("clerk", "ClerkPass123", "Front Desk")

        assert user.password_hash != "ClerkPass123"
        assert user.role == UserRole.ADMIN
        assert (await repo.get_user_by_username("clerk")).id == user.id
        assert await repo.get_user_by_id("not-an-id") is None
