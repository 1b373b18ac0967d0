from sqlalchemy import Column, Integer, Boolean, Float, Date, DateTime, ForeignKey, Text, String, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(120), nullable=False)
    # Unique constraint is the guarantee against two concurrent signups with one email.
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="athlete", nullable=False)  # 'athlete', 'coach', 'admin'
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    profile = relationship("AthleteProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    training = relationship("TrainingDetails", back_populates="user", uselist=False, cascade="all, delete-orphan")
    achievements = relationship("Achievement", back_populates="user", cascade="all, delete-orphan")
    performance_stats = relationship("PerformanceStat", back_populates="user", cascade="all, delete-orphan")


class AthleteProfile(Base):
    """Personal, physical and sporting details. One row per athlete."""
    __tablename__ = "athlete_profiles"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    nationality = Column(String(80), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)
    profile_photo = Column(Text, nullable=True)

    # Physical
    height_cm = Column(Float, nullable=True)
    weight_kg = Column(Float, nullable=True)
    blood_group = Column(String(3), nullable=True)
    dominant_hand = Column(String(20), nullable=True)

    # Sport
    sport_category = Column(String(100), nullable=True)
    sport_discipline = Column(String(150), nullable=True)
    playing_level = Column(String(20), nullable=True)
    team_club = Column(String(150), nullable=True)
    coach_name = Column(String(120), nullable=True)
    years_experience = Column(Integer, nullable=True)
    membership_plan = Column(String(20), nullable=True)

    # Contact
    phone = Column(String(20), nullable=True)
    emergency_contact_name = Column(String(120), nullable=True)
    emergency_contact_phone = Column(String(20), nullable=True)
    social_instagram = Column(String(100), nullable=True)
    social_twitter = Column(String(100), nullable=True)
    social_linkedin = Column(String(100), nullable=True)
    website = Column(Text, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    user = relationship("User", back_populates="profile")


class TrainingDetails(Base):
    __tablename__ = "training_details"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    training_days = Column(String(200), nullable=True)
    session_duration = Column(String(50), nullable=True)
    preferred_time = Column(String(20), nullable=True)  # 'morning', 'afternoon', 'evening', 'night'
    current_program = Column(String(255), nullable=True)
    training_goals = Column(Text, nullable=True)
    diet_type = Column(String(100), nullable=True)
    supplements = Column(Text, nullable=True)
    injuries_history = Column(Text, nullable=True)
    recovery_methods = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    user = relationship("User", back_populates="training")


class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_name = Column(String(255), nullable=True)
    position = Column(String(50), nullable=True)
    award_date = Column(Date, nullable=True)
    level = Column(String(20), nullable=True)  # 'local', 'state', 'national', 'international'
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="achievements")

    __table_args__ = (
        Index("ix_achievements_user_award_date", "user_id", "award_date"),
    )


class PerformanceStat(Base):
    """
    A single recorded measurement.

    ``stat_value`` is free text: numeric values ("102.5") and notes such as
    "PR attempt" share the column. The series endpoint decides per row
    whether the value is numeric.
    """
    __tablename__ = "performance_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    stat_name = Column(String(100), nullable=False)
    stat_value = Column(String(100), nullable=False)
    unit = Column(String(30), nullable=True)
    recorded_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="performance_stats")

    __table_args__ = (
        Index("ix_performance_stats_user_metric_date", "user_id", "stat_name", "recorded_date"),
    )
