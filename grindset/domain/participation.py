"""Participation ledger domain models."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from grindset.core.clock import parse_timestamp


class ParticipateRecord(BaseModel):
    """Accounting record for one (user, grind) pair."""

    id: str = Field(..., description="Unique record ID")
    user_id: str = Field(..., description="Participant user ID")
    grind_id: str = Field(..., description="Grind ID")
    missed_days: int = Field(default=0, ge=0, description="Days whose task was not completed")
    total_penalty: int = Field(default=0, ge=0, description="Penalty owed")
    quitted: bool = Field(default=False, description="Whether the participant quit")
    quitted_at: datetime | None = Field(default=None, description="When the participant quit")

    @field_validator("quitted_at", mode="before")
    @classmethod
    def parse_quitted_at(cls, v: str | datetime | None) -> datetime | None:
        """Accept persisted ISO strings; empty means never quitted."""
        if v in (None, ""):
            return None
        return parse_timestamp(v)


class Accounting(BaseModel):
    """Missed-day count and penalty for one participant."""

    missed_days: int = Field(..., ge=0)
    total_penalty: int = Field(..., ge=0)


class ParticipantSummary(BaseModel):
    """A participant as shown alongside a grind."""

    user_id: str
    grind_id: str
    username: str | None = None
    email: str | None = None
    missed_days: int
    total_penalty: int
    quitted: bool
    quitted_at: datetime | None = None
