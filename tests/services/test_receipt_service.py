import asyncio

import pytest
from bson import ObjectId

from app.core.config import settings
from app.core.exceptions import NotFoundError, PersistenceError
from app.models.base import utcnow
from app.models.transaction import Transaction
from app.repositories.counter_repo import CounterRepository
from app.repositories.student_repo import StudentRepository
from app.repositories.transaction_repo import TransactionRepository
from app.services.payment_service import PaymentService
from app.services.receipt_service import ReceiptService
from app.services.student_service import StudentService
from app.utils.formatters import format_receipt_number, receipt_counter_key, receipt_prefix


def _entry(student_id=None, **overrides) -> Transaction:
    fields = dict(
        student_id=student_id or ObjectId(),
        student_name="Walk-in",
        amount=100,
        recorded_by="Office Admin",
    )
    fields.update(overrides)
    return Transaction(**fields)


@pytest.mark.asyncio
async def test_receipt_numbers_are_sequential_within_a_month(test_db):
    service = ReceiptService(test_db)
    now = utcnow()

    entries = [await service.insert_with_receipt_number(_entry(date=now)) for _ in range(5)]

    numbers = [e.receipt_number for e in entries]
    assert numbers == [format_receipt_number(now, n) for n in range(1, 6)]
    assert len(set(numbers)) == 5


@pytest.mark.asyncio
async def test_concurrent_inserts_get_consecutive_unique_numbers(test_db):
    service = ReceiptService(test_db)
    now = utcnow()

    entries = await asyncio.gather(*[
        service.insert_with_receipt_number(_entry(date=now)) for _ in range(20)
    ])

    numbers = sorted(e.receipt_number for e in entries)
    assert numbers == [format_receipt_number(now, n) for n in range(1, 21)]
    stored = await TransactionRepository(test_db).list_recent(limit=50)
    assert len({t.receipt_number for t in stored}) == 20


@pytest.mark.asyncio
async def test_concurrent_payments_for_different_students(test_db, admin_user):
    students = StudentService(test_db)
    enrolled = [
        await students.enroll(admin_user, f"Learner {n}", f"learner{n}@example.com", "Python", down_payment=0)
        for n in range(8)
    ]
    payments = PaymentService(test_db)

    results = await asyncio.gather(*[
        payments.collect(student.code, 500, admin_user) for student in enrolled
    ])

    prefix = receipt_prefix(results[0].transaction.date)
    sequences = sorted(int(r.transaction.receipt_number[len(prefix):]) for r in results)
    assert sequences == list(range(1, 9))


@pytest.mark.asyncio
async def test_collision_regenerates_number(test_db):
    now = utcnow()
    # Entry numbered outside the counter, e.g. imported history
    await TransactionRepository(test_db).insert(_entry(
        date=now, receipt_number=format_receipt_number(now, 1)
    ))
    await TransactionRepository(test_db).insert(_entry(
        date=now, receipt_number=format_receipt_number(now, 2)
    ))

    entry = await ReceiptService(test_db).insert_with_receipt_number(_entry(date=now))

    assert entry.receipt_number == format_receipt_number(now, 3)
    assert await CounterRepository(test_db).current(receipt_counter_key(now)) == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(test_db, monkeypatch):
    monkeypatch.setattr(settings, "RECEIPT_NUMBER_MAX_RETRIES", 2)
    now = utcnow()
    service = ReceiptService(test_db)
    await TransactionRepository(test_db).insert(_entry(
        date=now, receipt_number=format_receipt_number(now, 1)
    ))

    async def stuck_counter(name):
        return 1

    monkeypatch.setattr(service.counters, "next_value", stuck_counter)

    with pytest.raises(PersistenceError):
        await service.insert_with_receipt_number(_entry(date=now))

    stored = await TransactionRepository(test_db).list_recent(limit=10)
    assert len(stored) == 1


@pytest.mark.asyncio
async def test_payments_from_different_students_share_the_month_sequence(test_db, admin_user):
    students = StudentService(test_db)
    first = await students.enroll(admin_user, "A One", "one@example.com", "Python", down_payment=0)
    second = await students.enroll(admin_user, "B Two", "two@example.com", "Python", down_payment=0)
    payments = PaymentService(test_db)

    r1 = await payments.collect(first.code, 100, admin_user)
    r2 = await payments.collect(second.code, 100, admin_user)
    r3 = await payments.collect(first.code, 100, admin_user)

    prefix = receipt_prefix(r1.transaction.date)
    sequences = [int(r.transaction.receipt_number[len(prefix):]) for r in (r1, r2, r3)]
    assert sequences == sorted(sequences)
    assert len(set(sequences)) == 3


@pytest.mark.asyncio
async def test_render_uses_live_totals(test_db, admin_user, enrolled_student):
    result = await PaymentService(test_db).collect(enrolled_student.code, 5000, admin_user, payment_mode="Cheque")
    await PaymentService(test_db).collect(enrolled_student.code, 2000, admin_user)

    receipt = await ReceiptService(test_db).render(result.transaction.id)

    assert receipt.receipt_number == result.transaction.receipt_number
    assert receipt.amount == 5000
    assert receipt.amount_in_words == "Five Thousand Rupees Only"
    assert receipt.payment_mode == "Cheque"
    assert receipt.previous_balance == 10000
    assert receipt.new_balance == 15000
    # Totals reflect the ledger now, not when the receipt was issued
    assert receipt.total_paid == 17000
    assert receipt.total_fee == 50000
    assert receipt.pending_amount == 33000
    assert receipt.student_code == enrolled_student.code
    assert receipt.organization_name


@pytest.mark.asyncio
async def test_render_after_student_deleted(test_db, admin_user, enrolled_student):
    result = await PaymentService(test_db).collect(enrolled_student.code, 5000, admin_user)
    await StudentRepository(test_db).delete(enrolled_student.id)

    receipt = await ReceiptService(test_db).render(result.transaction.id)

    assert receipt.student_name == "Asha Verma"
    assert receipt.student_email is None
    assert receipt.total_fee is None
    assert receipt.total_paid == 15000


@pytest.mark.asyncio
async def test_render_unknown_transaction(test_db):
    with pytest.raises(NotFoundError):
        await ReceiptService(test_db).render(ObjectId())
