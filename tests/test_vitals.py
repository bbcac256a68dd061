"""Vitals range checks and the /vitals/check endpoint."""
from fastapi.testclient import TestClient

from app.schemas.vitals import VitalsSnapshot
from app.services.vitals import bmi, bmi_category, check_normal_ranges


def test_normal_snapshot_has_no_alerts():
    snap = VitalsSnapshot(
        blood_pressure={"systolic": 120, "diastolic": 80},
        heart_rate=72,
        blood_sugar={"fasting": 90, "post_prandial": 130},
        temperature=98.6,
        oxygen_saturation=98,
    )
    assert check_normal_ranges(snap) == []


def test_every_alert_in_order():
    snap = VitalsSnapshot(
        blood_pressure={"systolic": 150, "diastolic": 55},
        heart_rate=110,
        blood_sugar={"fasting": 130, "post_prandial": 210},
        temperature=101,
        oxygen_saturation=90,
    )
    assert check_normal_ranges(snap) == [
        "High blood pressure detected",
        "Low blood pressure detected",
        "High fasting blood sugar",
        "High post-meal blood sugar",
        "Abnormal heart rate",
        "Abnormal body temperature",
        "Low oxygen saturation",
    ]


def test_thresholds_are_exclusive():
    snap = VitalsSnapshot(
        blood_pressure={"systolic": 140, "diastolic": 90},
        heart_rate=60,
        blood_sugar={"fasting": 126, "post_prandial": 200},
        temperature=100.4,
        oxygen_saturation=95,
    )
    assert check_normal_ranges(snap) == []


def test_high_systolic_only():
    snap = VitalsSnapshot(blood_pressure={"systolic": 150, "diastolic": 80})
    assert check_normal_ranges(snap) == ["High blood pressure detected"]


def test_missing_readings_are_skipped():
    assert check_normal_ranges(VitalsSnapshot()) == []
    assert check_normal_ranges(None) == []
    assert check_normal_ranges(VitalsSnapshot(blood_pressure={"diastolic": 95})) == ["High blood pressure detected"]
    assert check_normal_ranges(VitalsSnapshot(heart_rate=45)) == ["Abnormal heart rate"]


def test_bmi():
    assert bmi(VitalsSnapshot(weight=70, height=175)) == 22.9
    assert bmi(VitalsSnapshot(weight=70)) is None
    assert bmi_category(17.0) == "underweight"
    assert bmi_category(22.9) == "normal"
    assert bmi_category(27.0) == "overweight"
    assert bmi_category(31.0) == "obese"
    assert bmi_category(None) is None


def test_vitals_check_endpoint(client: TestClient, auth_headers):
    r = client.post(
        "/vitals/check",
        json={"blood_pressure": {"systolic": 160, "diastolic": 95}, "weight": 90, "height": 170},
        headers=auth_headers,
    )
    assert r.status_code == 200
    j = r.json()
    assert j["alerts"] == ["High blood pressure detected"]
    assert j["bmi"] == 31.1
    assert j["bmi_category"] == "obese"


def test_vitals_check_requires_auth(client: TestClient):
    r = client.post("/vitals/check", json={})
    assert r.status_code == 401
