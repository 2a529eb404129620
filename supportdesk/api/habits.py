from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from supportdesk.api.deps import body_user_id
from supportdesk.core.config import settings
from supportdesk.core.db import get_db
from supportdesk.core.habits import HabitComplianceService
from supportdesk.schemas.common import ERROR_RESPONSES, Envelope
from supportdesk.schemas.habit import (
    ComplianceData,
    DailyComplianceResponse,
    DailyComplianceUpsert,
    HabitRewardResponse,
    HabitStats,
    HabitTrackerResponse,
    TrackerData,
    TrackerSummary,
    TrackerWindow,
)

router = APIRouter(prefix="/api/v1/habits", tags=["Habits"], responses=ERROR_RESPONSES)


@router.post("/daily-compliance", response_model=Envelope[ComplianceData])
def upsert_daily_compliance(
    payload: DailyComplianceUpsert,
    caller: str = Depends(body_user_id),
    db: Session = Depends(get_db),
):
    """
    Record one day's compliance for one habit. Re-posting the same day
    overwrites the earlier record.
    """
    record = HabitComplianceService(db).upsert_daily_compliance(
        user_id=caller,
        habit_id=payload.habit_id,
        compliance_date=payload.compliance_date,
        checks=payload.checks,
        notes=payload.notes,
    )
    return Envelope(data=ComplianceData(compliance=DailyComplianceResponse.model_validate(record)))


@router.get("/tracker/{user_id:path}", response_model=Envelope[TrackerData])
def get_tracker(
    user_id: str,
    days: int = Query(settings.TRACKER_WINDOW_DAYS, ge=1, le=366),
    db: Session = Depends(get_db),
):
    view = HabitComplianceService(db).build_tracker_view(user_id, days=days)
    tracker = view["tracker"]
    return Envelope(
        data=TrackerData(
            user_id=view["user_id"],
            window=TrackerWindow(**view["window"]),
            tracker=HabitTrackerResponse.model_validate(tracker) if tracker is not None else None,
            habits=[HabitStats(**habit) for habit in view["habits"]],
            recent=[DailyComplianceResponse.model_validate(record) for record in view["recent"]],
            summary=TrackerSummary(**view["summary"]),
            rewards=[HabitRewardResponse.model_validate(reward) for reward in view["rewards"]],
        )
    )
