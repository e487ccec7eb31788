"""Task scheduler: daily task fan-out and shared problem assignment.

Every participant of a grind gets one task per day. The first read of a
day's task assigns a problem and broadcasts it to every sibling task of the
same grind and day, so all participants work on the same problem.
"""

import asyncio
import logging
import weakref
from datetime import timedelta

from grindset.core import clock, db_client
from grindset.core.config import constants
from grindset.core.errors import (
    ProblemNotFoundError,
    ProblemSourceUnavailableError,
    TaskNotFoundError,
    TaskWindowClosedError,
)
from grindset.core.logging import log_with_user_context, span
from grindset.domain.grind import Grind
from grindset.domain.task import ProblemPayload, ProgressEntry, ProgressStatus, Task
from grindset.services.problem_source import ProblemSource, get_default_problem_source


logger = logging.getLogger(__name__)

COLLECTION = "tasks"

# One lock per (grind_id, day_key); serializes in-process first reads of a day.
# Entries disappear once no coroutine holds or waits on the lock.
_assignment_locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()


def _assignment_lock(grind_id: str, day_key: str) -> asyncio.Lock:
    lock = _assignment_locks.get((grind_id, day_key))
    if lock is None:
        lock = asyncio.Lock()
        _assignment_locks[(grind_id, day_key)] = lock
    return lock


def _grind_filter(grind_id: str) -> str:
    return f'grind_id = "{db_client.sanitize_param(grind_id)}"'


def _participant_filter(*, user_id: str, grind_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}" && {_grind_filter(grind_id)}'


async def generate_tasks_for_participant(*, grind: Grind, user_id: str) -> list[Task]:
    """Create one unassigned task per day of the grind for a participant."""
    with span("task_service.generate_tasks_for_participant"):
        start = clock.start_of_day(grind.start_date)
        tasks = []
        for offset in range(grind.duration):
            day = start + timedelta(days=offset)
            record = await db_client.create_record(
                collection=COLLECTION,
                data={
                    "task_type": constants.TASK_TYPE_LEETCODE,
                    "user_id": user_id,
                    "grind_id": grind.id,
                    "date": day,
                    "day_key": clock.day_key(day),
                    "completed": False,
                },
            )
            tasks.append(Task(**record))

        log_with_user_context(
            logger, "info", "Generated tasks", user_id=user_id, grind_id=grind.id, count=len(tasks)
        )
        return tasks


async def get_task(
    *,
    task_id: str,
    assign_problem: bool = False,
    problem_source: ProblemSource | None = None,
    timeout: float | None = None,
) -> Task:
    """Get a task by ID, optionally assigning its day's problem first.

    Raises:
        TaskNotFoundError: If the task does not exist
    """
    with span("task_service.get_task"):
        try:
            task = Task(**await db_client.get_record(collection=COLLECTION, record_id=task_id))
        except db_client.RecordNotFoundError as e:
            raise TaskNotFoundError from e

        if assign_problem:
            task = await assign_problem_if_needed(task=task, problem_source=problem_source, timeout=timeout)
        return task


async def get_today_task(
    *,
    user_id: str,
    grind_id: str,
    problem_source: ProblemSource | None = None,
    timeout: float | None = None,
) -> Task:
    """Get the participant's task for today, with its problem assigned.

    Today is the window [midnight - 1h, midnight + 23h] UTC.

    Raises:
        TaskNotFoundError: If the participant has no task today
        ProblemSourceUnavailableError: If a problem had to be fetched and could not be
    """
    with span("task_service.get_today_task"):
        window_start, window_end = clock.today_window(clock.utc_now())
        record = await db_client.get_first_record(
            collection=COLLECTION,
            filter_query=(
                f"{_participant_filter(user_id=user_id, grind_id=grind_id)}"
                f' && date >= "{clock.format_timestamp(window_start)}"'
                f' && date <= "{clock.format_timestamp(window_end)}"'
            ),
            sort="+date",
        )
        if record is None:
            raise TaskNotFoundError("No task for today.")

        return await assign_problem_if_needed(task=Task(**record), problem_source=problem_source, timeout=timeout)


async def _find_assigned_sibling(task: Task) -> Task | None:
    record = await db_client.get_first_record(
        collection=COLLECTION,
        filter_query=f'{_grind_filter(task.grind_id)} && day_key = "{task.day_key}" && problem_title != null',
        sort="+id",
    )
    return Task(**record) if record else None


async def _fetch_payload(problem_source: ProblemSource, timeout: float) -> ProblemPayload:
    try:
        problem = await asyncio.wait_for(problem_source.fetch_random(), timeout=timeout)
    except TimeoutError as e:
        logger.error("Problem source timed out", extra={"timeout": timeout})
        raise ProblemSourceUnavailableError from e
    except ProblemNotFoundError as e:
        logger.error("Problem source returned no problem", extra={"error": str(e)})
        raise ProblemSourceUnavailableError from e
    return ProblemPayload.from_problem(problem)


async def assign_problem_if_needed(
    *,
    task: Task,
    problem_source: ProblemSource | None = None,
    timeout: float | None = None,
) -> Task:
    """Make sure the task's grind and day have a problem, and return the task.

    An already-assigned sibling's problem is reused; otherwise one is fetched.
    The payload is written with a single update limited to siblings still
    lacking a problem, so concurrent readers converge on the first payload
    written even across processes.

    Raises:
        ProblemSourceUnavailableError: On fetch failure or timeout
    """
    if task.has_problem:
        return task

    with span("task_service.assign_problem_if_needed"):
        async with _assignment_lock(task.grind_id, task.day_key):
            sibling = await _find_assigned_sibling(task)
            if sibling is not None:
                payload = ProblemPayload.from_task(sibling)
                source = "sibling"
            else:
                payload = await _fetch_payload(
                    problem_source or get_default_problem_source(),
                    timeout or constants.PROBLEM_SOURCE_TIMEOUT_SECONDS,
                )
                source = "fetched"

            updated = await db_client.update_records(
                collection=COLLECTION,
                filter_query=f'{_grind_filter(task.grind_id)} && day_key = "{task.day_key}" && problem_title = null',
                data=payload.model_dump(),
            )
            logger.info(
                "Problem broadcast to grind day",
                extra={
                    "grind_id": task.grind_id,
                    "day_key": task.day_key,
                    "source": source,
                    "updated": updated,
                },
            )

        return await get_task(task_id=task.id)


async def finish_task(*, task_id: str, code: str, language: str) -> Task:
    """Mark a task completed with the submitted solution.

    Finishing again overwrites the submission.

    Raises:
        TaskNotFoundError: If the task does not exist
        TaskWindowClosedError: If the task's day has already passed
    """
    with span("task_service.finish_task"):
        task = await get_task(task_id=task_id)
        now = clock.utc_now()
        if task.date < clock.start_of_day(now):
            raise TaskWindowClosedError

        record = await db_client.update_record(
            collection=COLLECTION,
            record_id=task.id,
            data={"completed": True, "finished_time": now, "code": code, "code_language": language},
        )
        log_with_user_context(logger, "info", "Task finished", user_id=task.user_id, task_id=task.id)
        return Task(**record)


async def finish_today_task(
    *,
    user_id: str,
    code: str,
    language: str,
    problem_source: ProblemSource | None = None,
    timeout: float | None = None,
) -> Task:
    """Finish today's task of the user's ongoing grind.

    Raises:
        GrindNotFoundError: If the user has no ongoing grind
        TaskNotFoundError: If there is no task today
    """
    from grindset.services import grind_service

    with span("task_service.finish_today_task"):
        grind = await grind_service.get_ongoing_grind_for_user(user_id=user_id)
        task = await get_today_task(
            user_id=user_id, grind_id=grind.id, problem_source=problem_source, timeout=timeout
        )
        return await finish_task(task_id=task.id, code=code, language=language)


async def get_progress(*, user_id: str, grind_id: str) -> list[ProgressEntry]:
    """Day-by-day status of a participant's tasks."""
    with span("task_service.get_progress"):
        today = clock.start_of_day(clock.utc_now())
        entries = []
        for task in await list_tasks_for_participant(user_id=user_id, grind_id=grind_id):
            if task.completed:
                status = ProgressStatus.COMPLETED
            elif task.date < today:
                status = ProgressStatus.MISSED
            else:
                status = ProgressStatus.PENDING
            entries.append(ProgressEntry(id=task.id, date=task.date, finished_time=task.finished_time, status=status))
        return entries


async def list_tasks_for_participant(*, user_id: str, grind_id: str) -> list[Task]:
    records = await db_client.get_full_list(
        collection=COLLECTION,
        filter_query=_participant_filter(user_id=user_id, grind_id=grind_id),
        sort="+date",
    )
    return [Task(**r) for r in records]


async def list_tasks_for_grind(*, grind_id: str) -> list[Task]:
    """All tasks of a grind ordered by day."""
    with span("task_service.list_tasks_for_grind"):
        records = await db_client.get_full_list(collection=COLLECTION, filter_query=_grind_filter(grind_id), sort="+date")
        return [Task(**r) for r in records]


async def delete_tasks_for_grind(*, grind_id: str) -> int:
    with span("task_service.delete_tasks_for_grind"):
        return await db_client.delete_records(collection=COLLECTION, filter_query=_grind_filter(grind_id))


async def delete_tasks_for_participant(*, grind_id: str, user_id: str) -> int:
    with span("task_service.delete_tasks_for_participant"):
        return await db_client.delete_records(
            collection=COLLECTION,
            filter_query=_participant_filter(user_id=user_id, grind_id=grind_id),
        )
