import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from supportdesk.core.errors import AuthenticationRequired, ValidationError
from supportdesk.models.habit import HabitDailyCompliance, HabitReward, HabitTracker, UserHabit

logger = logging.getLogger(__name__)

MAX_SLOTS = 4


def compliance_score(checks: Sequence[bool]) -> float:
    """Share of completed slots among the slots reported for the day."""
    if not checks:
        raise ValidationError("At least one completion flag is required")
    if len(checks) > MAX_SLOTS:
        raise ValidationError(f"At most {MAX_SLOTS} completion flags are allowed per day")
    return round(sum(1 for done in checks if done) / len(checks), 4)


def current_streak(day_scores: Dict[date, List[float]], today: date) -> int:
    """
    Consecutive perfect days ending today. A day with no record yet today does
    not break the streak; counting then starts from yesterday.
    """
    def perfect(day: date) -> bool:
        scores = day_scores.get(day)
        return bool(scores) and all(score >= 1.0 for score in scores)

    day = today if today in day_scores else today - timedelta(days=1)
    streak = 0
    while perfect(day):
        streak += 1
        day -= timedelta(days=1)
    return streak


class HabitComplianceService:
    def __init__(self, db: Session):
        self.db = db

    def _find(self, user_id: str, habit_id: str, compliance_date: date) -> Optional[HabitDailyCompliance]:
        return (
            self.db.query(HabitDailyCompliance)
            .filter(
                HabitDailyCompliance.user_id == user_id,
                HabitDailyCompliance.habit_id == habit_id,
                HabitDailyCompliance.compliance_date == compliance_date,
            )
            .first()
        )

    def _touch_tracker(self, user_id: str, compliance_date: date) -> HabitTracker:
        tracker = self.db.query(HabitTracker).filter(HabitTracker.user_id == user_id).first()
        if tracker is None:
            tracker = HabitTracker(user_id=user_id, started_on=compliance_date)
            self.db.add(tracker)
        elif compliance_date < tracker.started_on:
            tracker.started_on = compliance_date
        tracker.last_activity_at = datetime.utcnow()
        return tracker

    def _write(self, user_id: str, habit_id: str, compliance_date: date, values: Dict[str, Any]) -> HabitDailyCompliance:
        record = self._find(user_id, habit_id, compliance_date)
        if record is None:
            record = HabitDailyCompliance(user_id=user_id, habit_id=habit_id, compliance_date=compliance_date)
            self.db.add(record)
        for key, value in values.items():
            setattr(record, key, value)
        record.updated_at = datetime.utcnow()
        self._touch_tracker(user_id, compliance_date)
        self.db.flush()
        return record

    def upsert_daily_compliance(
        self,
        user_id: Optional[str],
        habit_id: str,
        compliance_date: date,
        checks: Sequence[bool],
        notes: Optional[Sequence[Optional[str]]] = None,
    ) -> HabitDailyCompliance:
        """
        Insert or update the single record for (user, habit, day) and commit.

        Losing an insert race to a concurrent request shows up as a unique
        constraint failure; the transaction is rolled back and replayed once,
        at which point the row exists and is updated instead.
        """
        if user_id is None or not user_id.strip():
            raise AuthenticationRequired("Authentication required. Please log in to track habits.")
        if not habit_id or not habit_id.strip():
            raise ValidationError("Missing required field: habit_id")

        notes = list(notes or [])
        if len(notes) > MAX_SLOTS:
            raise ValidationError(f"At most {MAX_SLOTS} notes are allowed per day")

        values: Dict[str, Any] = {"compliance_score": compliance_score(checks), "notes": notes}
        for slot in range(1, MAX_SLOTS + 1):
            values[f"done_{slot}"] = checks[slot - 1] if slot <= len(checks) else None

        for attempt in (1, 2):
            try:
                record = self._write(user_id, habit_id, compliance_date, values)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                if attempt == 2:
                    raise
                logger.info("Concurrent compliance write for %s/%s on %s, replaying as update",
                            user_id, habit_id, compliance_date)
                continue
            self.db.refresh(record)
            return record

    def build_tracker_view(self, user_id: str, days: int = 30, today: Optional[date] = None) -> Dict[str, Any]:
        """Aggregate a user's habits, recent compliance and rewards over the last ``days`` days."""
        if not user_id or not user_id.strip():
            raise AuthenticationRequired("Authentication required. Please log in to view your tracker.")
        if days < 1:
            raise ValidationError("days must be at least 1")

        today = today or datetime.utcnow().date()
        window_start = today - timedelta(days=days - 1)

        tracker = self.db.query(HabitTracker).filter(HabitTracker.user_id == user_id).first()
        catalog = (
            self.db.query(UserHabit)
            .filter(UserHabit.user_id == user_id)
            .order_by(UserHabit.created_at.asc(), UserHabit.id.asc())
            .all()
        )
        records = (
            self.db.query(HabitDailyCompliance)
            .filter(
                HabitDailyCompliance.user_id == user_id,
                HabitDailyCompliance.compliance_date >= window_start,
                HabitDailyCompliance.compliance_date <= today,
            )
            .order_by(HabitDailyCompliance.compliance_date.desc(), HabitDailyCompliance.habit_id.asc())
            .all()
        )
        rewards = (
            self.db.query(HabitReward)
            .filter(HabitReward.user_id == user_id)
            .order_by(HabitReward.earned_at.desc(), HabitReward.id.desc())
            .all()
        )

        by_habit: Dict[str, List[HabitDailyCompliance]] = defaultdict(list)
        by_day: Dict[date, List[float]] = defaultdict(list)
        for record in records:
            by_habit[record.habit_id].append(record)
            by_day[record.compliance_date].append(record.compliance_score)

        habits = []
        known = set()
        for habit in catalog:
            known.add(habit.habit_id)
            habits.append(self._habit_stats(habit.habit_id, habit.name, habit.daily_slots, habit.is_active,
                                            by_habit.get(habit.habit_id, [])))
        # Habits logged without a catalog entry still show up, named by id.
        for habit_id in sorted(set(by_habit) - known):
            habits.append(self._habit_stats(habit_id, habit_id, None, True, by_habit[habit_id]))

        all_scores = [record.compliance_score for record in records]
        perfect_days = sum(1 for scores in by_day.values() if all(score >= 1.0 for score in scores))

        return {
            "user_id": user_id,
            "window": {"start": window_start, "end": today, "days": days},
            "tracker": tracker,
            "habits": habits,
            "recent": records,
            "summary": {
                "days_logged": len(by_day),
                "average_score": round(sum(all_scores) / len(all_scores), 4) if all_scores else 0.0,
                "perfect_days": perfect_days,
                "current_streak": current_streak(by_day, today),
            },
            "rewards": rewards,
        }

    @staticmethod
    def _habit_stats(habit_id, name, daily_slots, is_active, records):
        scores = [record.compliance_score for record in records]
        return {
            "habit_id": habit_id,
            "name": name,
            "daily_slots": daily_slots,
            "is_active": is_active,
            "days_logged": len(records),
            "average_score": round(sum(scores) / len(scores), 4) if scores else 0.0,
            "last_compliance_date": max((record.compliance_date for record in records), default=None),
        }
