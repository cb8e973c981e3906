import pytest

from app.repositories.student_repo import StudentRepository


@pytest.mark.asyncio
async def test_collect_payment(client, enrolled_student):
    response = await client.post("/api/payments/collect", json={
        "studentId": enrolled_student.code,
        "amount": 5000,
        "paymentMode": "UPI",
        "notes": "March installment"
    })

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["warning"] is None
    transaction = data["transaction"]
    assert transaction["amount"] == 5000
    assert transaction["paymentMode"] == "UPI"
    assert transaction["status"] == "Completed"
    assert transaction["previousBalance"] == 10000
    assert transaction["newBalance"] == 15000
    assert transaction["recordedBy"] == "Office Admin"
    assert transaction["receiptNumber"].startswith("RCP-")
    assert data["student"]["feesPaid"] == 15000
    assert data["student"]["pendingAmount"] == 35000


@pytest.mark.asyncio
async def test_collect_accepts_numeric_string(client, enrolled_student):
    response = await client.post("/api/payments/collect", json={
        "studentId": enrolled_student.code,
        "amount": "2500.50"
    })

    assert response.status_code == 201
    assert response.json()["transaction"]["paymentMode"] == "Cash"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -100, "abc", None])
async def test_collect_rejects_bad_amount(client, test_db, enrolled_student, amount):
    response = await client.post("/api/payments/collect", json={
        "studentId": enrolled_student.code,
        "amount": amount
    })

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "INVALID_INPUT"
    assert (await StudentRepository(test_db).get_by_id(enrolled_student.id)).fees_paid == 10000


@pytest.mark.asyncio
async def test_collect_rejects_bad_payment_mode(client, enrolled_student):
    response = await client.post("/api/payments/collect", json={
        "studentId": enrolled_student.code,
        "amount": 100,
        "paymentMode": "Bitcoin"
    })

    assert response.status_code == 400
    assert "Invalid payment mode" in response.json()["message"]


@pytest.mark.asyncio
async def test_collect_unknown_student(client):
    response = await client.post("/api/payments/collect", json={"studentId": "STU404", "amount": 100})

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_collect_concurrent_update_is_409(client, monkeypatch, enrolled_student):
    async def lost_race(self, *args, **kwargs):
        return None

    monkeypatch.setattr(StudentRepository, "inc_fees_paid_if", lost_race)

    response = await client.post("/api/payments/collect", json={
        "studentId": enrolled_student.code,
        "amount": 100
    })

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "CONCURRENT_MODIFICATION"
    assert body["details"]["studentId"] == enrolled_student.code


@pytest.mark.asyncio
async def test_overpayment_is_recorded_with_warning(client, enrolled_student):
    response = await client.post("/api/payments/collect", json={
        "studentId": enrolled_student.code,
        "amount": 45000
    })

    assert response.status_code == 201
    assert "exceeds" in response.json()["warning"]


@pytest.mark.asyncio
async def test_verify_reports_drift(client, test_db, enrolled_student):
    healthy = await client.get("/api/payments/verify")
    assert healthy.json()["healthy"] is True

    await test_db["students"].update_one({"_id": enrolled_student.id}, {"$set": {"fees_paid": 7000}})
    response = await client.get("/api/payments/verify")

    data = response.json()
    assert data["healthy"] is False
    assert data["issues"][0]["studentCode"] == enrolled_student.code
    assert data["issues"][0]["difference"] == -3000
    assert data["summary"]["studentsWithIssues"] == 1


@pytest.mark.asyncio
async def test_fix_requires_super_admin(client, test_db, enrolled_student):
    await test_db["students"].update_one({"_id": enrolled_student.id}, {"$set": {"fees_paid": 7000}})

    response = await client.post("/api/payments/fix-inconsistencies")

    assert response.status_code == 403
    assert (await StudentRepository(test_db).get_by_id(enrolled_student.id)).fees_paid == 7000


@pytest.mark.asyncio
async def test_fix_inconsistencies(super_client, test_db, enrolled_student):
    await test_db["students"].update_one({"_id": enrolled_student.id}, {"$set": {"fees_paid": 7000}})

    response = await super_client.post("/api/payments/fix-inconsistencies")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["message"] == "Fixed 1 inconsistent balance(s)"
    assert data["fixed"][0]["newFeesPaid"] == 10000
    assert (await StudentRepository(test_db).get_by_id(enrolled_student.id)).fees_paid == 10000


@pytest.mark.asyncio
async def test_collect_requires_authentication(anonymous_client):
    response = await anonymous_client.post("/api/payments/collect", json={"studentId": "STU001", "amount": 1})

    assert response.status_code in (401, 403)
