import math
import re
from typing import List, Literal
from pydantic import BaseModel, Field, field_validator

_LEADING_INT = re.compile(r"^\s*\+?(\d+)")


class UserProfile(BaseModel):
    age: int = Field(default=30, ge=0)
    gender: Literal["male", "female", "other"] = "male"
    conditions: List[str] = []
    allergies: List[str] = []
    medications: List[str] = []  # currently taking

    @field_validator("age", mode="before")
    @classmethod
    def coerce_age(cls, value):
        """Whatever the form sends, age ends up a non-negative int (0 if unreadable)."""
        if isinstance(value, bool) or value is None:
            return 0
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        if isinstance(value, (int, float)):
            return max(int(value), 0)
        match = _LEADING_INT.match(str(value))
        return int(match.group(1)) if match else 0

    @field_validator("gender", mode="before")
    @classmethod
    def lower_gender(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class ProfileRead(BaseModel):
    profile: UserProfile
    exists: bool


class ProfileSuggestions(BaseModel):
    conditions: List[str]
    allergies: List[str]
