from fastapi import APIRouter, Depends

from app.api.deps import get_current_user_id
from app.schemas import VitalsCheckResponse, VitalsSnapshot
from app.services.vitals import bmi, bmi_category, check_normal_ranges

router = APIRouter(prefix="/vitals", tags=["vitals"])


@router.post("/check", response_model=VitalsCheckResponse)
def check_vitals(snapshot: VitalsSnapshot, _user_id: int = Depends(get_current_user_id)):
    """Range alerts and BMI for one snapshot; nothing is stored."""
    value = bmi(snapshot)
    return VitalsCheckResponse(
        alerts=check_normal_ranges(snapshot),
        bmi=value,
        bmi_category=bmi_category(value),
    )
