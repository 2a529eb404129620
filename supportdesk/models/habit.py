from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Text, JSON, Boolean, UniqueConstraint
from supportdesk.core.db import Base


class HabitTracker(Base):
    __tablename__ = "habit_trackers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    started_on = Column(Date, nullable=False)
    last_activity_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserHabit(Base):
    __tablename__ = "user_habits"
    __table_args__ = (UniqueConstraint("user_id", "habit_id", name="uq_user_habits_user_habit"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    habit_id = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    daily_slots = Column(Integer, nullable=False, default=4)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class HabitDailyCompliance(Base):
    """
    One row per (user, habit, day). Written only through the upsert in
    supportdesk.core.habits.
    """
    __tablename__ = "habit_daily_compliance"
    __table_args__ = (
        UniqueConstraint("user_id", "habit_id", "compliance_date", name="uq_habit_daily_compliance_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    habit_id = Column(String(100), nullable=False, index=True)
    compliance_date = Column(Date, nullable=False, index=True)
    done_1 = Column(Boolean, nullable=True)
    done_2 = Column(Boolean, nullable=True)
    done_3 = Column(Boolean, nullable=True)
    done_4 = Column(Boolean, nullable=True)
    notes = Column(JSON, nullable=False, default=list)
    compliance_score = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class HabitReward(Base):
    __tablename__ = "habit_rewards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    earned_at = Column(DateTime, default=datetime.utcnow, index=True)
