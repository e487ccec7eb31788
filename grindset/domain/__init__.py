"""Domain models and DTOs."""

from grindset.domain.grind import Grind, GrindCreate, GrindUpdate
from grindset.domain.message import InvitationCreate, InvitationStatus, Message, MessageType
from grindset.domain.participation import Accounting, ParticipantSummary, ParticipateRecord
from grindset.domain.task import Problem, ProblemPayload, ProgressEntry, ProgressStatus, Task, TaskFinish
from grindset.domain.user import User


__all__ = [
    "Accounting",
    "Grind",
    "GrindCreate",
    "GrindUpdate",
    "InvitationCreate",
    "InvitationStatus",
    "Message",
    "MessageType",
    "ParticipantSummary",
    "ParticipateRecord",
    "Problem",
    "ProblemPayload",
    "ProgressEntry",
    "ProgressStatus",
    "Task",
    "TaskFinish",
    "User",
]
