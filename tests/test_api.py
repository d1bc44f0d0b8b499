from sqlalchemy import select

from claimflow.database.seed import DEMO_POLICY_NUMBER
from claimflow.database.tables import AuditLog, Claim

CLAIM_PAYLOAD = {
    "policy_number": DEMO_POLICY_NUMBER,
    "claim_type": "HOSPITALIZATION",
    "claim_date": "2025-03-10",
    "treatment_start_date": "2025-03-03",
    "treatment_end_date": "2025-03-05",
    "hospital_name": "Seoul General Hospital",
    "diagnosis_code": "K35.8",
    "insured_expense": 4_000_000,
}


def as_user(user_id):
    return {"X-User-Id": str(user_id)}


def submit(client, **overrides):
    response = client.post("/api/v1/claims", json={**CLAIM_PAYLOAD, **overrides})
    assert response.status_code == 200
    return response.json()


# ===================
# Root & Admin
# ===================

def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["endpoints"]["claims"] == "/api/v1/claims"


def test_admin_health_reports_database(client):
    response = client.get("/api/v1/admin/health")

    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["fraud_profile"] == "INTAKE"


# ===================
# Claims
# ===================

def test_submit_and_fetch_claim(client):
    result = submit(client)

    assert result["status"] == "PENDING_REVIEW"
    assert result["total_approved_amount"] == 3_900_000
    assert result["coverage"]["items"][0]["term_reference"]["article"] == "Article 3 (1)"

    detail = client.get(f"/api/v1/claims/{result['claim_id']}").json()
    assert detail["claim_number"] == result["claim_number"]
    assert detail["analysis_snapshot"]["fraud_analysis"]["profile"] == "INTAKE"

    by_number = client.get(f"/api/v1/claims/number/{result['claim_number']}")
    assert by_number.json()["id"] == result["claim_id"]

    models = client.get(f"/api/v1/claims/{result['claim_id']}/model-results").json()
    assert [m["model_code"] for m in models] == ["BASELINE", "CONSERVATIVE", "LENIENT"]


def test_list_claims_filters_by_status(client):
    submit(client)
    submit(client, hospital_name="Other Hospital", insured_expense=1_000_000)

    pending = client.get("/api/v1/claims", params={"status": "PENDING_REVIEW"}).json()
    approved = client.get("/api/v1/claims", params={"status": "APPROVED"}).json()

    assert pending["total"] == 1
    assert approved["total"] == 1
    assert approved["claims"][0]["total_approved_amount"] == 900_000


def test_list_claims_rejects_unknown_status(client):
    response = client.get("/api/v1/claims", params={"status": "MAYBE"})

    assert response.status_code == 422


def test_submit_rejects_negative_expense(client):
    response = client.post("/api/v1/claims", json={**CLAIM_PAYLOAD, "insured_expense": -5})

    assert response.status_code == 422


def test_missing_claim_returns_error_body(client):
    response = client.get("/api/v1/claims/999")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "CLAIM_NOT_FOUND"


# ===================
# Approvals
# ===================

def test_approval_flow_over_http(client, users, database):
    claim_id = submit(client)["claim_id"]

    started = client.post("/api/v1/approvals/start", json={"claim_id": claim_id, "urgent": True},
                          headers=as_user(users["U001"]))
    assert started.status_code == 200
    approval_id = started.json()["approval_id"]

    inbox = client.get("/api/v1/approvals/inbox", headers=as_user(users["U002"])).json()
    assert inbox["total"] == 1
    assert inbox["items"][0]["is_urgent"] is True

    step_one = client.post(f"/api/v1/approvals/{approval_id}/process",
                           json={"action": "APPROVE", "comments": "ok"},
                           headers=as_user(users["U002"]))
    assert step_one.json()["current_step"] == 2

    step_two = client.post(f"/api/v1/approvals/{approval_id}/process",
                           json={"action": "APPROVE", "adjusted_amount": 3_500_000},
                           headers=as_user(users["U004"]))
    assert step_two.json()["status"] == "APPROVED"
    assert step_two.json()["claim_status"] == "APPROVED"

    status = client.get(f"/api/v1/approvals/claim/{claim_id}").json()
    assert status["approval"]["status"] == "APPROVED"
    assert len(status["history"]) == 2

    history = client.get(f"/api/v1/approvals/claim/{claim_id}/history").json()
    assert [h["approver_role"] for h in history] == ["TEAM_LEAD", "DEPT_HEAD"]

    summary = client.get("/api/v1/approvals/inbox/summary", headers=as_user(users["U002"])).json()
    assert summary["pending"] == 0
    assert summary["processed_today"] == 1

    with database.session_scope() as session:
        actions = [a.action for a in session.scalars(select(AuditLog).order_by(AuditLog.id))]
    assert actions == ["CLAIM_ADJUDICATED", "APPROVAL_START", "APPROVAL_APPROVE", "APPROVAL_APPROVE"]


def test_missing_user_header_is_rejected(client, pending_claim):
    response = client.post("/api/v1/approvals/start", json={"claim_id": pending_claim})

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_unknown_or_inactive_caller_is_not_found(client, pending_claim, users):
    unknown = client.get("/api/v1/approvals/inbox", headers=as_user(999))
    inactive = client.get("/api/v1/approvals/inbox", headers=as_user(users["U005"]))

    assert unknown.status_code == 404
    assert inactive.json()["error_code"] == "USER_NOT_FOUND"


def test_wrong_approver_gets_forbidden(client, pending_claim, users):
    approval_id = client.post("/api/v1/approvals/start", json={"claim_id": pending_claim},
                              headers=as_user(users["U001"])).json()["approval_id"]

    response = client.post(f"/api/v1/approvals/{approval_id}/process", json={"action": "APPROVE"},
                           headers=as_user(users["U001"]))

    assert response.status_code == 403
    assert response.json()["error_code"] == "NOT_AUTHORIZED_TO_APPROVE"


def test_duplicate_start_and_skip_are_business_errors(client, pending_claim, users):
    approval_id = client.post("/api/v1/approvals/start", json={"claim_id": pending_claim},
                              headers=as_user(users["U001"])).json()["approval_id"]

    duplicate = client.post("/api/v1/approvals/start", json={"claim_id": pending_claim},
                            headers=as_user(users["U001"]))
    skip = client.post(f"/api/v1/approvals/{approval_id}/process", json={"action": "SKIP"},
                       headers=as_user(users["U002"]))

    assert duplicate.status_code == 400
    assert duplicate.json()["error_code"] == "DUPLICATE_ACTIVE_WORKFLOW"
    assert skip.status_code == 400
    assert skip.json()["error_code"] == "ACTION_NOT_SUPPORTED"


def test_conflicting_write_returns_409(client, pending_claim, users, monkeypatch):
    from claimflow.storage.approval_store import ApprovalStore

    approval_id = client.post("/api/v1/approvals/start", json={"claim_id": pending_claim},
                              headers=as_user(users["U001"])).json()["approval_id"]
    monkeypatch.setattr(ApprovalStore, "complete_entry", lambda self, entry_id, completed_at: False)

    response = client.post(f"/api/v1/approvals/{approval_id}/process", json={"action": "APPROVE"},
                           headers=as_user(users["U002"]))

    assert response.status_code == 409
    assert response.json()["error_code"] == "CONFLICT"


def test_unknown_action_fails_request_validation(client, pending_claim, users):
    response = client.post("/api/v1/approvals/1/process", json={"action": "ESCALATE"},
                           headers=as_user(users["U002"]))

    assert response.status_code == 422


def test_templates_endpoint(client):
    templates = client.get("/api/v1/approvals/templates").json()

    assert templates[0]["template_code"] == "FRAUD_REVIEW"
    assert any(t["is_auto_approve"] for t in templates)


# ===================
# Fraud
# ===================

def test_fraud_detection_endpoints(client, database, pending_claim):
    detected = client.post(f"/api/v1/fraud/claims/{pending_claim}/detect")

    assert detected.status_code == 200
    body = detected.json()
    assert body["success"] is True
    assert body["risk_level"] == "LOW"
    assert body["recommended_action"] == "APPROVE"

    results = client.get(f"/api/v1/fraud/claims/{pending_claim}/results").json()
    assert results["total"] == 1

    with database.session_scope() as session:
        session.get(Claim, pending_claim).fraud_score = 65

    high_risk = client.get("/api/v1/fraud/high-risk").json()
    assert [c["claim_id"] for c in high_risk["claims"]] == [pending_claim]
    assert client.get("/api/v1/fraud/high-risk", params={"min_score": 70}).json()["total"] == 0


def test_fraud_detection_for_missing_claim(client):
    response = client.post("/api/v1/fraud/claims/999/detect")

    assert response.status_code == 404
