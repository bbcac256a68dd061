"""Fixed clinical thresholds for a vitals snapshot. Pure functions; missing readings are skipped."""
from app.schemas.vitals import VitalsSnapshot


def _above(value: float | None, limit: float) -> bool:
    return value is not None and value > limit


def _below(value: float | None, limit: float) -> bool:
    return value is not None and value < limit


def check_normal_ranges(snapshot: VitalsSnapshot | None) -> list[str]:
    if snapshot is None:
        return []
    alerts: list[str] = []

    bp = snapshot.blood_pressure
    if bp is not None:
        if _above(bp.systolic, 140) or _above(bp.diastolic, 90):
            alerts.append("High blood pressure detected")
        if _below(bp.systolic, 90) or _below(bp.diastolic, 60):
            alerts.append("Low blood pressure detected")

    sugar = snapshot.blood_sugar
    if sugar is not None:
        if _above(sugar.fasting, 126):
            alerts.append("High fasting blood sugar")
        if _above(sugar.post_prandial, 200):
            alerts.append("High post-meal blood sugar")

    if _above(snapshot.heart_rate, 100) or _below(snapshot.heart_rate, 60):
        alerts.append("Abnormal heart rate")

    # °F
    if _above(snapshot.temperature, 100.4) or _below(snapshot.temperature, 97):
        alerts.append("Abnormal body temperature")

    if _below(snapshot.oxygen_saturation, 95):
        alerts.append("Low oxygen saturation")

    return alerts


def bmi(snapshot: VitalsSnapshot | None) -> float | None:
    """kg / m², one decimal; None unless both weight and height are present."""
    if snapshot is None or not snapshot.weight or not snapshot.height:
        return None
    meters = snapshot.height / 100
    return round(snapshot.weight / (meters * meters), 1)


def bmi_category(value: float | None) -> str | None:
    if value is None:
        return None
    if value < 18.5:
        return "underweight"
    if value < 25:
        return "normal"
    if value < 30:
        return "overweight"
    return "obese"
