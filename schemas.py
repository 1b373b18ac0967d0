from pydantic import BaseModel, ConfigDict, EmailStr, HttpUrl, StringConstraints, field_validator, model_validator
from datetime import datetime, date
from typing import Annotated, Any, Optional, List, Literal, Dict

from core.password_policy import validate_password


def BoundedStr(max_length: int, min_length: int = 0):
    return Annotated[str, StringConstraints(strip_whitespace=True, min_length=min_length, max_length=max_length)]


def _blank_to_none(data: Any, keep: tuple = ()) -> Any:
    """Empty strings clear a column; map them to None before field validation."""
    if isinstance(data, dict):
        return {
            k: (None if (k not in keep and isinstance(v, str) and v.strip() == "") else v)
            for k, v in data.items()
        }
    return data


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class SignupRequest(BaseModel):
    full_name: BoundedStr(120, min_length=1)
    email: EmailStr
    password: str
    role: Literal["athlete", "coach"] = "athlete"

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def check_password_policy(cls, v: str) -> str:
        ok, errors = validate_password(v)
        if not ok:
            raise ValueError(" ".join(errors))
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: Annotated[str, StringConstraints(min_length=1)]

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ChangePasswordRequest(BaseModel):
    current_password: Annotated[str, StringConstraints(min_length=1)]
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password_policy(cls, v: str) -> str:
        ok, errors = validate_password(v)
        if not ok:
            raise ValueError(" ".join(errors))
        return v


class UserResponse(BaseModel):
    id: int
    full_name: str
    email: str
    role: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Athlete profile & training
# ---------------------------------------------------------------------------

class ProfileUpdate(BaseModel):
    """Partial profile update. Only fields present in the request are written."""
    full_name: Optional[BoundedStr(120, min_length=1)] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Literal["male", "female", "non_binary", "prefer_not_to_say"]] = None
    nationality: Optional[BoundedStr(80)] = None
    city: Optional[BoundedStr(100)] = None
    state: Optional[BoundedStr(100)] = None
    country: Optional[BoundedStr(100)] = None
    bio: Optional[BoundedStr(4000)] = None
    profile_photo: Optional[HttpUrl] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    blood_group: Optional[Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]] = None
    dominant_hand: Optional[Literal["left", "right", "ambidextrous"]] = None
    sport_category: Optional[BoundedStr(100)] = None
    sport_discipline: Optional[BoundedStr(150)] = None
    playing_level: Optional[Literal["beginner", "amateur", "semi_pro", "professional", "elite"]] = None
    team_club: Optional[BoundedStr(150)] = None
    coach_name: Optional[BoundedStr(120)] = None
    years_experience: Optional[int] = None
    membership_plan: Optional[Literal["iron_starter", "iron_forge", "iron_elite"]] = None
    phone: Optional[BoundedStr(20)] = None
    emergency_contact_name: Optional[BoundedStr(120)] = None
    emergency_contact_phone: Optional[BoundedStr(20)] = None
    social_instagram: Optional[BoundedStr(100)] = None
    social_twitter: Optional[BoundedStr(100)] = None
    social_linkedin: Optional[BoundedStr(100)] = None
    website: Optional[HttpUrl] = None

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def blank_fields_clear(cls, data: Any) -> Any:
        # full_name may not be cleared; an empty one fails min_length instead.
        return _blank_to_none(data, keep=("full_name",))

    @field_validator("height_cm")
    @classmethod
    def check_height(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 100 <= v <= 250:
            raise ValueError("height_cm must be between 100 and 250.")
        return v

    @field_validator("weight_kg")
    @classmethod
    def check_weight(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 30 <= v <= 300:
            raise ValueError("weight_kg must be between 30 and 300.")
        return v

    @field_validator("years_experience")
    @classmethod
    def check_experience(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 0 <= v <= 100:
            raise ValueError("years_experience must be between 0 and 100.")
        return v

    def profile_changes(self) -> Dict[str, Any]:
        """Supplied profile columns (everything except full_name), ready to store."""
        changes = self.model_dump(exclude_unset=True, exclude={"full_name"})
        for key in ("profile_photo", "website"):
            if changes.get(key) is not None:
                changes[key] = str(changes[key])
        return changes


class TrainingUpdate(BaseModel):
    training_days: Optional[BoundedStr(200)] = None
    session_duration: Optional[BoundedStr(50)] = None
    preferred_time: Optional[Literal["morning", "afternoon", "evening", "night"]] = None
    current_program: Optional[BoundedStr(255)] = None
    training_goals: Optional[BoundedStr(4000)] = None
    diet_type: Optional[BoundedStr(100)] = None
    supplements: Optional[BoundedStr(4000)] = None
    injuries_history: Optional[BoundedStr(4000)] = None
    recovery_methods: Optional[BoundedStr(4000)] = None

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def blank_fields_clear(cls, data: Any) -> Any:
        return _blank_to_none(data)


class ProfileResponse(BaseModel):
    user_id: int
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    bio: Optional[str] = None
    profile_photo: Optional[str] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    blood_group: Optional[str] = None
    dominant_hand: Optional[str] = None
    sport_category: Optional[str] = None
    sport_discipline: Optional[str] = None
    playing_level: Optional[str] = None
    team_club: Optional[str] = None
    coach_name: Optional[str] = None
    years_experience: Optional[int] = None
    membership_plan: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    social_instagram: Optional[str] = None
    social_twitter: Optional[str] = None
    social_linkedin: Optional[str] = None
    website: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TrainingResponse(BaseModel):
    user_id: int
    training_days: Optional[str] = None
    session_duration: Optional[str] = None
    preferred_time: Optional[str] = None
    current_program: Optional[str] = None
    training_goals: Optional[str] = None
    diet_type: Optional[str] = None
    supplements: Optional[str] = None
    injuries_history: Optional[str] = None
    recovery_methods: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Achievements & performance stats
# ---------------------------------------------------------------------------

class AchievementCreate(BaseModel):
    title: BoundedStr(255, min_length=1)
    description: Optional[BoundedStr(4000)] = None
    event_name: Optional[BoundedStr(255)] = None
    position: Optional[BoundedStr(50)] = None
    award_date: Optional[date] = None
    level: Optional[Literal["local", "state", "national", "international"]] = None

    @model_validator(mode="before")
    @classmethod
    def blank_fields_clear(cls, data: Any) -> Any:
        return _blank_to_none(data, keep=("title",))


class AchievementResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    event_name: Optional[str] = None
    position: Optional[str] = None
    award_date: Optional[date] = None
    level: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StatCreate(BaseModel):
    stat_name: BoundedStr(100, min_length=1)
    stat_value: BoundedStr(100, min_length=1)
    unit: Optional[BoundedStr(30)] = None
    recorded_date: Optional[date] = None
    notes: Optional[BoundedStr(4000)] = None

    @model_validator(mode="before")
    @classmethod
    def blank_fields_clear(cls, data: Any) -> Any:
        return _blank_to_none(data, keep=("stat_name", "stat_value"))


class StatResponse(BaseModel):
    id: int
    stat_name: str
    stat_value: str
    unit: Optional[str] = None
    recorded_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StatPointResponse(BaseModel):
    id: int
    recorded_date: Optional[date] = None
    stat_value: str
    numeric_value: Optional[float] = None
    is_numeric: bool
    unit: Optional[str] = None
    notes: Optional[str] = None


class MetricSeriesResponse(BaseModel):
    metric: str
    unit: Optional[str] = None
    latest: Optional[StatPointResponse] = None
    personal_best: Optional[StatPointResponse] = None
    points: List[StatPointResponse]


class StatsSeriesData(BaseModel):
    metrics: List[str]
    series: List[MetricSeriesResponse]


class PageMeta(BaseModel):
    limit: int
    offset: int


class StatsSeriesEnvelope(BaseModel):
    success: bool = True
    data: StatsSeriesData
    meta: PageMeta
