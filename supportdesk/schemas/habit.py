from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class DailyComplianceUpsert(BaseModel):
    user_id: Optional[Union[str, int]] = Field(None, description="Caller identity owning the record.")
    habit_id: str = Field(..., min_length=1, description="Habit identifier.")
    compliance_date: date = Field(..., description="Calendar day the record covers.")
    checks: List[bool] = Field(..., description="Done flag per slot, 1 to 4 entries.")
    notes: List[Optional[str]] = Field(default_factory=list, description="Free-form note per slot.")


class DailyComplianceResponse(BaseModel):
    id: int
    user_id: str
    habit_id: str
    compliance_date: date
    done_1: Optional[bool] = None
    done_2: Optional[bool] = None
    done_3: Optional[bool] = None
    done_4: Optional[bool] = None
    notes: List[Optional[str]] = []
    compliance_score: float
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HabitTrackerResponse(BaseModel):
    user_id: str
    started_on: date
    last_activity_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class HabitRewardResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    earned_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HabitStats(BaseModel):
    habit_id: str
    name: str
    daily_slots: Optional[int] = None
    is_active: bool = True
    days_logged: int
    average_score: float
    last_compliance_date: Optional[date] = None


class TrackerWindow(BaseModel):
    start: date
    end: date
    days: int


class TrackerSummary(BaseModel):
    days_logged: int
    average_score: float
    perfect_days: int
    current_streak: int


class ComplianceData(BaseModel):
    compliance: DailyComplianceResponse


class TrackerData(BaseModel):
    user_id: str
    window: TrackerWindow
    tracker: Optional[HabitTrackerResponse] = None
    habits: List[HabitStats]
    recent: List[DailyComplianceResponse]
    summary: TrackerSummary
    rewards: List[HabitRewardResponse]
