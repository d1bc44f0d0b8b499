import requests
import sys

ROOT_URL = "http://localhost:8000"
BASE_URL = f"{ROOT_URL}/api/v1"

def check_root():
    try:
        r = requests.get(f"{ROOT_URL}/")
        assert r.status_code == 200
        print("✅ Root endpoint operational")
    except (requests.RequestException, AssertionError) as e:
        print(f"❌ Root endpoint failed: {e}")
        sys.exit(1)

def check_health():
    try:
        r = requests.get(f"{BASE_URL}/admin/health")
        body = r.json()
        if body.get("database") == "connected":
            print("✅ Database connected")
        else:
            print(f"⚠️ Health check reported {body.get('status')}: {body}")
    except requests.RequestException as e:
        print(f"❌ Health check failed: {e}")

def check_claim_submission():
    # This expects the server to be running with demo data seeded
    payload = {
        "policy_number": "POL-2024-0001",
        "claim_type": "OUTPATIENT",
        "treatment_start_date": "2025-03-03",
        "hospital_name": "Smoke Check Clinic",
        "diagnosis_code": "J18.9",
        "insured_expense": 50000,
    }
    try:
        r = requests.post(f"{BASE_URL}/claims", json=payload)
        if r.status_code == 200:
            print("✅ Claim submission operational")
            body = r.json()
            print("Result:", body.get("claim_number"), body.get("status"), body.get("total_approved_amount"))
        else:
            print(f"⚠️ Claim submission returned {r.status_code}: {r.text}")
    except requests.RequestException as e:
        print(f"❌ Claim submission failed: {e}")

if __name__ == "__main__":
    check_root()
    check_health()
    check_claim_submission()
