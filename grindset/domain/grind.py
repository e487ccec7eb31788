"""Grind domain models and request payloads."""

from datetime import datetime, timedelta

from pydantic import BaseModel, Field, field_validator, model_validator

from grindset.core.clock import ensure_utc, parse_timestamp


class Grind(BaseModel):
    """Grind data transfer object."""

    id: str = Field(..., description="Unique grind ID")
    duration: int = Field(..., gt=0, description="Length of the grind in days")
    budget: int = Field(..., ge=0, description="Money at stake, in whole currency units")
    start_date: datetime = Field(..., description="First day of the grind (UTC)")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    participant_ids: list[str] = Field(default_factory=list, description="IDs of users in the grind")

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start_date(cls, v: str | datetime) -> datetime:
        """Accept persisted ISO strings as well as datetimes."""
        return parse_timestamp(v)

    @property
    def end_date(self) -> datetime:
        """Moment the grind is over: start date plus duration days."""
        return self.start_date + timedelta(days=self.duration)

    @property
    def daily_penalty(self) -> int:
        """Penalty owed per missed day (integer division of budget by duration)."""
        return self.budget // self.duration


class GrindCreate(BaseModel):
    """Validated payload for creating a grind."""

    duration: int = Field(..., gt=0, description="Length of the grind in days")
    budget: int = Field(..., ge=0, description="Money at stake")
    participants: list[str] = Field(..., min_length=1, description="Participant emails or user IDs")
    start_date: datetime = Field(..., alias="startDate", description="First day of the grind")

    model_config = {"populate_by_name": True}

    @field_validator("participants")
    @classmethod
    def validate_participants(cls, v: list[str]) -> list[str]:
        """Strip identifiers and reject blanks."""
        cleaned = [p.strip() for p in v]
        if any(not p for p in cleaned):
            raise ValueError("Participant identifiers cannot be empty")
        return cleaned

    @field_validator("start_date")
    @classmethod
    def normalize_start_date(cls, v: datetime) -> datetime:
        """Store start dates in UTC."""
        return ensure_utc(v)


class GrindUpdate(BaseModel):
    """Partial update for a grind; only duration and budget are mutable."""

    duration: int | None = Field(default=None, gt=0)
    budget: int | None = Field(default=None, ge=0)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def require_a_field(self) -> "GrindUpdate":
        """Reject empty updates."""
        if self.duration is None and self.budget is None:
            raise ValueError("Provide duration and/or budget to update")
        return self
