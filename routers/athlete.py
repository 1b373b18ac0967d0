"""
Athlete API Endpoints

Profile, training details, achievements and performance stats for the
authenticated athlete. Every query is scoped to the caller's user id;
rows belonging to someone else behave exactly like missing rows.
"""
from typing import Any, Dict, Type

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.database import Base, get_db
from core.exceptions import NotFoundError, ValidationError
from core.session import AuthContext
from models import Achievement, AthleteProfile, PerformanceStat, TrainingDetails, User
from schemas import (
    AchievementCreate,
    AchievementResponse,
    ProfileResponse,
    ProfileUpdate,
    StatCreate,
    StatResponse,
    StatsSeriesEnvelope,
    TrainingResponse,
    TrainingUpdate,
    UserResponse,
)
from services.stats_series import build_series_payload, fetch_series_rows

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/athlete", tags=["athlete"])


class Pagination:
    """``limit`` / ``offset`` query parameters shared by the list endpoints."""

    def __init__(
        self,
        limit: int = Query(50, ge=1, le=100, description="limit must be 1-100."),
        offset: int = Query(0, ge=0, le=10000, description="offset must be 0-10000."),
    ):
        self.limit = limit
        self.offset = offset

    def meta(self) -> Dict[str, int]:
        return {"limit": self.limit, "offset": self.offset}


def _get_or_create(db: Session, model: Type[Base], user_id: int):
    row = db.get(model, user_id)
    if row is None:
        row = model(user_id=user_id)
        db.add(row)
        db.flush()
    return row


def _apply_changes(row: Any, changes: Dict[str, Any]) -> None:
    for key, value in changes.items():
        setattr(row, key, value)


@router.get("/profile")
def get_profile(
    page: Pagination = Depends(),
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Everything the profile page shows, in one response."""
    user_id = current_user.user_id

    user = db.get(User, user_id)
    profile = db.get(AthleteProfile, user_id)
    training = db.get(TrainingDetails, user_id)

    achievements = (
        db.query(Achievement)
        .filter(Achievement.user_id == user_id)
        .order_by(Achievement.award_date.desc().nullslast(), Achievement.id.desc())
        .limit(page.limit)
        .offset(page.offset)
        .all()
    )
    stats = (
        db.query(PerformanceStat)
        .filter(PerformanceStat.user_id == user_id)
        .order_by(PerformanceStat.recorded_date.desc().nullslast(), PerformanceStat.id.desc())
        .limit(page.limit)
        .offset(page.offset)
        .all()
    )

    return {
        "success": True,
        "data": {
            "user": UserResponse.model_validate(user).model_dump(mode="json") if user else {},
            "profile": ProfileResponse.model_validate(profile).model_dump(mode="json") if profile else {},
            "achievements": [AchievementResponse.model_validate(a).model_dump(mode="json") for a in achievements],
            "stats": [StatResponse.model_validate(s).model_dump(mode="json") for s in stats],
            "training": TrainingResponse.model_validate(training).model_dump(mode="json") if training else {},
        },
        "meta": page.meta(),
    }


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update the caller's name and profile fields.

    Only fields present in the body are written; an empty string clears
    the column.
    """
    user_id = current_user.user_id

    if payload.full_name:
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        user.full_name = payload.full_name

    changes = payload.profile_changes()
    if changes:
        profile = _get_or_create(db, AthleteProfile, user_id)
        _apply_changes(profile, changes)

    db.commit()
    return {"success": True, "message": "Profile updated successfully."}


@router.put("/training")
def update_training(
    payload: TrainingUpdate,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update.", status_code=status.HTTP_400_BAD_REQUEST)

    training = _get_or_create(db, TrainingDetails, current_user.user_id)
    _apply_changes(training, changes)
    db.commit()

    return {"success": True, "message": "Training details updated."}


@router.post("/achievements", status_code=status.HTTP_201_CREATED)
def add_achievement(
    payload: AchievementCreate,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    achievement = Achievement(user_id=current_user.user_id, **payload.model_dump())
    db.add(achievement)
    db.commit()
    db.refresh(achievement)
    return {"success": True, "message": "Achievement added.", "id": achievement.id}


@router.delete("/achievements/{id}")
def delete_achievement(
    id: int = Path(..., ge=1, description="id must be a positive integer."),
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    deleted = (
        db.query(Achievement)
        .filter(Achievement.id == id, Achievement.user_id == current_user.user_id)
        .delete(synchronize_session=False)
    )
    if deleted == 0:
        raise NotFoundError("Achievement not found.")
    db.commit()
    return {"success": True, "message": "Achievement deleted."}


@router.post("/stats", status_code=status.HTTP_201_CREATED)
def add_stat(
    payload: StatCreate,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    stat = PerformanceStat(user_id=current_user.user_id, **payload.model_dump())
    db.add(stat)
    db.commit()
    db.refresh(stat)
    return {"success": True, "message": "Stat added.", "id": stat.id}


@router.get("/stats/series", response_model=StatsSeriesEnvelope)
def get_stats_series(
    page: Pagination = Depends(),
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Performance stats grouped into one chartable series per metric.

    Each series carries its points in date order, the latest point, and the
    personal best among numeric values.
    """
    rows = fetch_series_rows(db, current_user.user_id, limit=page.limit, offset=page.offset)
    return {
        "success": True,
        "data": build_series_payload(rows),
        "meta": page.meta(),
    }


@router.delete("/stats/{id}")
def delete_stat(
    id: int = Path(..., ge=1, description="id must be a positive integer."),
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    deleted = (
        db.query(PerformanceStat)
        .filter(PerformanceStat.id == id, PerformanceStat.user_id == current_user.user_id)
        .delete(synchronize_session=False)
    )
    if deleted == 0:
        raise NotFoundError("Stat not found.")
    db.commit()
    return {"success": True, "message": "Stat deleted."}
