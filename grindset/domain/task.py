"""Task and problem domain models."""

import json
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from grindset.core.clock import parse_timestamp
from grindset.core.config import constants


class Problem(BaseModel):
    """A coding problem as supplied by the problem source."""

    problem_id: int | None = Field(default=None, description="Catalog (frontend) ID")
    title: str = Field(..., description="Problem title")
    slug: str = Field(..., description="URL slug")
    difficulty: str = Field(default="", description="Easy / Medium / Hard")
    topic_tags: list[str] = Field(default_factory=list, description="Topic tag names")
    description: str | None = Field(default=None, description="Problem statement, when fetched")

    @property
    def url(self) -> str:
        """Link to the problem description."""
        return constants.LEETCODE_PROBLEM_URL_TEMPLATE.format(slug=self.slug)


class ProblemPayload(BaseModel):
    """Problem fields carried by a task; identical across a grind's tasks on one day."""

    problem_title: str
    problem_description: str | None = None
    problem_url: str | None = None
    problem_difficulty: str | None = None
    problem_topic_tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_problem(cls, problem: Problem) -> "ProblemPayload":
        """Build the task payload for a freshly fetched problem."""
        return cls(
            problem_title=problem.title,
            problem_description=constants.DEFAULT_PROBLEM_DESCRIPTION,
            problem_url=problem.url,
            problem_difficulty=problem.difficulty,
            problem_topic_tags=problem.topic_tags,
        )

    @classmethod
    def from_task(cls, task: "Task") -> "ProblemPayload":
        """Copy the payload off an already-assigned task."""
        return cls(
            problem_title=task.problem_title or "",
            problem_description=task.problem_description,
            problem_url=task.problem_url,
            problem_difficulty=task.problem_difficulty,
            problem_topic_tags=task.problem_topic_tags or [],
        )


class Task(BaseModel):
    """Task data transfer object: one participant's work for one day of a grind."""

    id: str = Field(..., description="Unique task ID")
    user_id: str = Field(..., description="Participant user ID")
    grind_id: str = Field(..., description="Grind ID")
    task_type: str = Field(default=constants.TASK_TYPE_LEETCODE, description="Kind of task")
    date: datetime = Field(..., description="Day this task belongs to (UTC)")
    day_key: str = Field(..., description="UTC calendar day as YYYY-MM-DD")
    completed: bool = Field(default=False, description="Whether the task was finished")
    finished_time: datetime | None = Field(default=None, description="When the task was finished")
    code: str | None = Field(default=None, description="Submitted solution")
    code_language: str | None = Field(default=None, description="Language of the submitted solution")
    problem_title: str | None = None
    problem_description: str | None = None
    problem_url: str | None = None
    problem_difficulty: str | None = None
    problem_topic_tags: list[str] | None = None

    @field_validator("date", "finished_time", mode="before")
    @classmethod
    def parse_datetimes(cls, v: str | datetime | None) -> datetime | None:
        """Accept persisted ISO strings."""
        if v in (None, ""):
            return None
        return parse_timestamp(v)

    @field_validator("problem_topic_tags", mode="before")
    @classmethod
    def parse_topic_tags(cls, v: str | list[str] | None) -> list[str] | None:
        """Topic tags are stored as a JSON array."""
        if isinstance(v, str):
            return json.loads(v) if v else []
        return v

    @property
    def has_problem(self) -> bool:
        """Whether a problem has been assigned to this task."""
        return bool(self.problem_title)


class TaskFinish(BaseModel):
    """Submission payload for finishing a task."""

    code: str = Field(..., description="Submitted solution")
    language: str = Field(..., min_length=1, description="Language of the solution")


class ProgressStatus(StrEnum):
    """Per-day status shown in a participant's progress view."""

    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"


class ProgressEntry(BaseModel):
    """One day of a participant's progress."""

    id: str
    date: datetime
    finished_time: datetime | None = None
    status: ProgressStatus
