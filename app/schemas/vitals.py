from pydantic import BaseModel


class BloodPressure(BaseModel):
    systolic: float | None = None
    diastolic: float | None = None


class BloodSugar(BaseModel):
    fasting: float | None = None
    post_prandial: float | None = None


class VitalsSnapshot(BaseModel):
    """Every part is optional; absent readings are skipped by the range checks."""
    blood_pressure: BloodPressure | None = None
    heart_rate: float | None = None  # bpm
    blood_sugar: BloodSugar | None = None  # mg/dL
    weight: float | None = None  # kg
    height: float | None = None  # cm
    temperature: float | None = None  # °F
    oxygen_saturation: float | None = None  # %


class VitalsCheckResponse(BaseModel):
    alerts: list[str]
    bmi: float | None = None
    bmi_category: str | None = None
