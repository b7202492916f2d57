import pytest

from conftest import PASSWORD
from portal.models import AuditLog, Notification, Requisition, Role, User
from portal.transaction_ids import validate


def _submit(client, **overrides):
    payload = {"item": "Laptop", "amount": "15000.00", "date": "2024-05-01", "description": "Dev machine"}
    payload.update(overrides)
    resp = client.post("/requisitions/", json=payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


@pytest.fixture
def team(make_user):
    return {
        "employee": make_user(Role.EMPLOYEE, department="IT", name="Eve Employee"),
        "hod": make_user(Role.HOD, department="IT", name="Helen HOD"),
        "finance": make_user(Role.FINANCE, department="Finance", name="Frank Finance"),
        "outsider": make_user(Role.EMPLOYEE, department="Sales", name="Oscar Outsider"),
    }


# ---------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------
def test_login_me_logout(app, team):
    client = app.test_client()
    assert client.get("/auth/me").status_code == 401

    resp = client.post("/auth/login", json={"email": team["employee"].email, "password": "wrong"})
    assert resp.status_code == 401

    resp = client.post("/auth/login", json={"email": team["employee"].email.upper(), "password": PASSWORD})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["role"] == Role.EMPLOYEE

    me = client.get("/auth/me").get_json()["data"]
    assert me["email"] == team["employee"].email
    assert me["isAvailable"] is True

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_inactive_user_cannot_log_in(app, make_user):
    user = make_user(is_active=False)
    resp = app.test_client().post("/auth/login", json={"email": user.email, "password": PASSWORD})
    assert resp.status_code == 403


def test_availability_toggle(client_for, team):
    client = client_for(team["hod"])
    assert client.put("/auth/me/availability", json={"available": "no"}).status_code == 400

    resp = client.put("/auth/me/availability", json={"available": False})
    assert resp.get_json()["data"] == {"isAvailable": False}
    assert client.get("/auth/me").get_json()["data"]["isAvailable"] is False


def test_seed_superuser_only_on_empty_system(app):
    client = app.test_client()
    payload = {"email": "root@example.com", "name": "Root", "password": "long-enough-pw"}

    resp = client.post("/auth/seed-superuser", json=payload)
    assert resp.status_code == 201
    assert resp.get_json()["data"]["role"] == Role.SUPERUSER

    again = client.post("/auth/seed-superuser", json={**payload, "email": "second@example.com"})
    assert again.status_code == 403
    assert User.query.count() == 1


def test_health(app):
    assert app.test_client().get("/health").get_json()["data"]["status"] == "ok"


# ---------------------------------------------------------------------
# Requisition lifecycle
# ---------------------------------------------------------------------
def test_two_stage_approval_over_http(db, client_for, team):
    employee = client_for(team["employee"])
    hod = client_for(team["hod"])
    finance = client_for(team["finance"])

    created = _submit(employee)
    rid = created["id"]
    assert validate(created["transactionId"])
    assert created["formattedTransactionId"].split("-")[2] == "***"
    assert created["status"] == "Pending"
    assert created["history"] == []

    # Finance cannot jump the queue
    resp = finance.post(f"/requisitions/{rid}/decision", json={"stage": "finance", "decision": "approve"})
    assert resp.status_code == 409

    resp = hod.post(f"/requisitions/{rid}/decision", json={"stage": "HOD", "decision": "Approve", "comment": "ok"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == "Finance Review"

    resp = finance.post(f"/requisitions/{rid}/decision", json={"stage": "finance", "decision": "approve"})
    body = resp.get_json()["data"]
    assert body["status"] == "Approved"
    assert [h["status"] for h in body["history"]] == ["HOD Approved", "Finance Approved"]
    assert [h["by"] for h in body["history"]] == ["Helen HOD", "Frank Finance"]

    # Final state is terminal
    resp = finance.post(f"/requisitions/{rid}/decision", json={"stage": "finance", "decision": "decline"})
    assert resp.status_code == 409

    db.session.expire_all()
    notes = Notification.query.filter_by(recipient_email=team["employee"].email).all()
    assert [n.template_type for n in notes] == ["quote_approved", "quote_approved"]
    assert AuditLog.query.filter_by(entity_type="Requisition", entity_id=rid).count() >= 3


def test_invalid_submission_returns_field_errors(client_for, team):
    resp = client_for(team["employee"]).post("/requisitions/", json={"item": "", "amount": "abc"})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert set(body["fields"]) == {"item", "amount"}


def test_admin_cannot_submit(client_for, make_user):
    admin = make_user(Role.ADMIN, department=None)
    resp = client_for(admin).post("/requisitions/", json={"item": "x", "amount": "1"})
    assert resp.status_code == 403


def test_employee_cannot_decide(client_for, team):
    employee = client_for(team["employee"])
    rid = _submit(employee)["id"]
    resp = employee.post(f"/requisitions/{rid}/decision", json={"stage": "hod", "decision": "approve"})
    assert resp.status_code == 403


def test_invisible_requisition_is_not_found(client_for, team):
    rid = _submit(client_for(team["employee"]))["id"]
    outsider = client_for(team["outsider"])
    assert outsider.get(f"/requisitions/{rid}").status_code == 404
    assert outsider.get(f"/requisitions/{rid}/report.csv").status_code == 404
    assert outsider.get("/requisitions/999999").status_code == 404


def test_edit_until_first_approval(client_for, team):
    employee = client_for(team["employee"])
    rid = _submit(employee)["id"]

    resp = employee.put(f"/requisitions/{rid}", json={"amount": "12000", "comment": "cheaper model"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["amount"] == "12000.00"

    client_for(team["hod"]).post(f"/requisitions/{rid}/decision", json={"stage": "hod", "decision": "approve"})
    assert employee.put(f"/requisitions/{rid}", json={"item": "Desktop"}).status_code == 409


def test_hod_submission_auto_approved_without_available_hod(db, client_for, make_user):
    hod = make_user(Role.HOD, department="Ops", name="Solo HOD")
    finance = make_user(Role.FINANCE, department="Finance")

    created = _submit(client_for(hod))
    assert created["hodStatus"] == "Approved"
    assert created["status"] == "Finance Review"
    assert created["history"][0]["by"] == "System"

    resp = client_for(finance).get("/requisitions/?status=finance-review")
    assert [r["id"] for r in resp.get_json()["data"]] == [created["id"]]


def test_hod_submission_waits_for_available_department_hod(client_for, make_user):
    requester = make_user(Role.HOD, department="IT")
    colleague = make_user(Role.HOD, department="IT", name="Colleague HOD")

    created = _submit(client_for(requester))
    assert created["status"] == "Pending"

    resp = client_for(colleague).post(
        f"/requisitions/{created['id']}/decision", json={"stage": "hod", "decision": "decline"}
    )
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == "Declined"


def test_list_scoping_search_and_filters(client_for, team):
    employee = client_for(team["employee"])
    outsider = client_for(team["outsider"])
    hod = client_for(team["hod"])

    laptop = _submit(employee, item="Laptop")["id"]
    chair = _submit(employee, item="Chair, office", description="ergonomic")["id"]
    foreign = _submit(outsider, item="Projector")["id"]

    hod.post(f"/requisitions/{chair}/decision", json={"stage": "hod", "decision": "decline"})

    def ids(client, query=""):
        resp = client.get(f"/requisitions/{query}")
        assert resp.status_code == 200
        return {r["id"] for r in resp.get_json()["data"]}

    assert ids(employee) == {laptop, chair}
    assert ids(hod) == {laptop, chair}
    assert ids(outsider) == {foreign}
    assert ids(client_for(team["finance"])) == {laptop, chair, foreign}

    assert ids(employee, "?q=ERGO") == {chair}
    assert ids(employee, "?status=declined") == {chair}
    assert ids(employee, "?status=pending") == {laptop}
    assert ids(employee, "?status=approved") == set()
    assert employee.get("/requisitions/?status=archived").status_code == 400


def test_csv_export_and_report(client_for, team):
    employee = client_for(team["employee"])
    rid = _submit(employee, item="Cables", description="HDMI, 2m")["id"]

    resp = employee.get("/requisitions/export.csv")
    assert resp.status_code == 200
    assert resp.mimetype == "text/csv"
    assert 'filename="quotes_export_' in resp.headers["Content-Disposition"]
    lines = resp.get_data(as_text=True).split("\n")
    assert lines[0] == "Date,Employee,Item,Amount,Description,Status,Comment"
    assert lines[1] == "2024-05-01,Eve Employee,Cables,15000.00,HDMI; 2m,Pending,"

    report = employee.get(f"/requisitions/{rid}/report.csv")
    assert report.status_code == 200
    text = report.get_data(as_text=True)
    assert text.startswith("Field,Value\n")
    assert "Final Status,Pending" in text


def test_analytics_over_visible_requisitions(client_for, team):
    employee = client_for(team["employee"])
    _submit(employee, amount="100")
    _submit(employee, amount="300")
    _submit(client_for(team["outsider"]), amount="1000")

    data = employee.get("/analytics/").get_json()["data"]
    assert data["overview"]["total"] == 2
    assert data["departmentBreakdown"] == {"IT": 2}

    finance = client_for(team["finance"])
    assert finance.get("/analytics/?department=Sales").get_json()["data"]["overview"]["total"] == 1
    assert finance.get("/analytics/?dateFrom=not-a-date").status_code == 400


def test_stored_requisition_matches_response(db, client_for, team):
    created = _submit(client_for(team["employee"]))
    db.session.expire_all()
    stored = db.session.get(Requisition, created["id"])
    assert stored.transaction_id == created["transactionId"]
    assert stored.requested_by == team["employee"].id
    assert stored.document_status == "Submitted"
