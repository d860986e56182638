from httpx import AsyncClient


async def test_requests_without_token_are_rejected(client: AsyncClient) -> None:
    response = await client.get("/api/v1/invoices")
    assert response.status_code == 401


async def test_staff_without_finance_permission_is_forbidden(client: AsyncClient, school, make_headers) -> None:
    response = await client.get("/api/v1/invoices", headers=make_headers(school.id, role="TEACHER"))
    assert response.status_code == 403


async def test_staff_with_finance_read_permission_is_allowed(client: AsyncClient, school, make_headers) -> None:
    headers = make_headers(school.id, role="ACCOUNTANT", permissions={"finance": {"read": True}})

    response = await client.get("/api/v1/invoices", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0, "limit": 50, "offset": 0}

    write = await client.post("/api/v1/invoices/generate", json={"term": 1, "year": 2026}, headers=headers)
    assert write.status_code == 403


async def test_generate_and_list_invoices(client: AsyncClient, auth_headers, make_student, make_structure) -> None:
    await make_structure(amount=1000)
    student = await make_student()

    response = await client.post(
        "/api/v1/invoices/generate", json={"term": 1, "year": 2026, "classLevel": "Form 1"}, headers=auth_headers
    )

    assert response.status_code == 201
    assert response.json()["invoicesCreated"] == 1
    assert response.json()["invoicesSkipped"] == 0

    listing = await client.get(f"/api/v1/invoices?studentId={student.id}", headers=auth_headers)
    item = listing.json()["items"][0]
    assert item["totalAmount"] == 1000
    assert item["balance"] == 1000
    assert item["status"] == "unpaid"


async def test_generate_without_structures_is_bad_request(client: AsyncClient, auth_headers, make_student) -> None:
    await make_student()
    response = await client.post("/api/v1/invoices/generate", json={"term": 1, "year": 2026}, headers=auth_headers)
    assert response.status_code == 400


async def test_payment_for_student_of_another_school(client: AsyncClient, auth_headers, other_school, make_student) -> None:
    outsider = await make_student(school_id=other_school.id)

    response = await client.post(
        "/api/v1/payments",
        json={"studentId": outsider.id, "feeType": "Tuition", "amountPaid": 100, "term": 1, "year": 2026},
        headers=auth_headers,
    )

    assert response.status_code == 403


async def test_payment_and_overpayment(client: AsyncClient, auth_headers, make_student, make_structure) -> None:
    await make_structure(amount=500)
    student = await make_student()
    await client.post("/api/v1/invoices/generate", json={"term": 1, "year": 2026}, headers=auth_headers)
    body = {"studentId": student.id, "feeType": "Tuition", "term": 1, "year": 2026, "paymentMethod": "Cheque"}

    paid = await client.post("/api/v1/payments", json={**body, "amountPaid": 200}, headers=auth_headers)
    assert paid.status_code == 201
    assert paid.json()["receiptNumber"] == "REC-2026-0001"
    assert paid.json()["paymentMethod"] == "Cheque"
    assert paid.json()["balance"] == 300

    over = await client.post("/api/v1/payments", json={**body, "amountPaid": 301}, headers=auth_headers)
    assert over.status_code == 400
    assert over.json()["detail"] == "Amount exceeds remaining balance of 300"


async def test_payment_plan_flow(client: AsyncClient, auth_headers, make_student) -> None:
    student = await make_student()

    created = await client.post(
        "/api/v1/payment-plans",
        json={
            "studentId": student.id,
            "planName": "Term 1 plan",
            "totalAmount": 900,
            "downPayment": 300,
            "installmentCount": 3,
            "frequency": "weekly",
            "startDate": "2026-01-05",
            "term": 1,
            "year": 2026,
        },
        headers=auth_headers,
    )
    assert created.status_code == 201
    plan = created.json()
    assert [i["amount"] for i in plan["installments"]] == [200, 200, 200]
    assert plan["installments"][0]["dueDate"] == "2026-01-12"

    paid = await client.post(
        f"/api/v1/payment-plans/{plan['id']}/pay",
        json={"installmentId": plan["installments"][0]["id"], "amount": 200},
        headers=auth_headers,
    )
    assert paid.status_code == 200
    assert paid.json() == {"success": True, "receiptNumber": "REC-2026-0001"}

    again = await client.post(
        f"/api/v1/payment-plans/{plan['id']}/pay",
        json={"installmentId": plan["installments"][0]["id"], "amount": 1},
        headers=auth_headers,
    )
    assert again.status_code == 400


async def test_invalid_plan_is_unprocessable(client: AsyncClient, auth_headers, make_student) -> None:
    student = await make_student()
    response = await client.post(
        "/api/v1/payment-plans",
        json={
            "studentId": student.id,
            "totalAmount": 500,
            "downPayment": 500,
            "installmentCount": 2,
            "frequency": "monthly",
            "startDate": "2026-01-05",
        },
        headers=auth_headers,
    )
    assert response.status_code == 422


async def test_debtors_endpoint_shape(client: AsyncClient, auth_headers, make_student, make_structure) -> None:
    await make_structure(amount=400)
    await make_student()
    await client.post(
        "/api/v1/invoices/generate", json={"term": 1, "year": 2026, "dueDate": "2026-01-10"}, headers=auth_headers
    )

    response = await client.get("/api/v1/finance/debtors?limit=10", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["limit"] == 10
    assert data["summary"]["totalDebtors"] == 1
    assert data["summary"]["totalOutstanding"] == 400
    assert set(data["summary"]) == {
        "totalDebtors", "totalOutstanding", "current", "days1to30", "days31to60", "days61to90", "days90plus",
    }
    debtor = data["debtors"][0]
    assert debtor["balance"] == 400
    assert debtor["studentName"] == "Amina Otieno"
    assert debtor["agingCategory"] in {"current", "1-30", "31-60", "61-90", "90+"}


async def test_fee_structure_crud(client: AsyncClient, auth_headers) -> None:
    created = await client.post(
        "/api/v1/fees/structures",
        json={"classLevel": "Form 3", "feeType": "Lunch", "amount": 250, "term": 2, "year": 2026, "boardingStatus": "day"},
        headers=auth_headers,
    )
    assert created.status_code == 201
    structure_id = created.json()["id"]

    listing = await client.get("/api/v1/fees/structures?classLevel=Form 3", headers=auth_headers)
    assert [s["id"] for s in listing.json()] == [structure_id]

    deleted = await client.delete(f"/api/v1/fees/structures/{structure_id}", headers=auth_headers)
    assert deleted.status_code == 204
