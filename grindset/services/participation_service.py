"""Participation ledger: membership, missed-day accounting and quitting."""

import logging

from grindset.core import clock, db_client
from grindset.core.errors import (
    AlreadyQuittedError,
    GrindNotFoundError,
    ParticipantAlreadyExistsError,
    ParticipantNotFoundError,
    ParticipateRecordNotFoundError,
)
from grindset.core.logging import log_with_user_context, span
from grindset.domain.grind import Grind
from grindset.domain.participation import Accounting, ParticipantSummary, ParticipateRecord
from grindset.services import task_service


logger = logging.getLogger(__name__)

COLLECTION = "participate_records"


def _record_filter(*, user_id: str, grind_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}" && grind_id = "{db_client.sanitize_param(grind_id)}"'


async def _load_grind(grind_id: str) -> Grind:
    try:
        record = await db_client.get_record(collection="grinds", record_id=grind_id)
    except db_client.RecordNotFoundError as e:
        raise GrindNotFoundError from e
    return Grind(**record)


async def _find_record(*, user_id: str, grind_id: str) -> ParticipateRecord | None:
    record = await db_client.get_first_record(
        collection=COLLECTION,
        filter_query=_record_filter(user_id=user_id, grind_id=grind_id),
    )
    return ParticipateRecord(**record) if record else None


async def create_participate_record(*, user_id: str, grind_id: str) -> ParticipateRecord:
    """Get or create the record for (user, grind).

    Backed by the unique index on (user_id, grind_id), so repeated or
    concurrent calls return the same row.
    """
    with span("participation_service.create_participate_record"):
        record, created = await db_client.get_or_create_record(
            collection=COLLECTION,
            lookup={"user_id": user_id, "grind_id": grind_id},
            defaults={"missed_days": 0, "total_penalty": 0, "quitted": False},
        )
        if created:
            log_with_user_context(logger, "info", "Participate record created", user_id=user_id, grind_id=grind_id)
        return ParticipateRecord(**record)


async def get_participate_record(*, user_id: str, grind_id: str) -> ParticipateRecord:
    """Get the record for (user, grind).

    Raises:
        ParticipateRecordNotFoundError: If the user never joined this grind
    """
    with span("participation_service.get_participate_record"):
        record = await _find_record(user_id=user_id, grind_id=grind_id)
        if record is None:
            raise ParticipateRecordNotFoundError
        return record


async def _count_missed_days(*, user_id: str, grind_id: str) -> int:
    today = clock.format_timestamp(clock.start_of_day(clock.utc_now()))
    return await db_client.count_records(
        collection="tasks",
        filter_query=f'{_record_filter(user_id=user_id, grind_id=grind_id)} && date < "{today}" && completed = "false"',
    )


async def compute_accounting(*, user_id: str, grind_id: str) -> Accounting:
    """Compute missed days and penalty for a participant.

    A missed day is an unfinished task dated before the start of the current
    UTC day. Quitters keep the values frozen when they quit. For everyone
    else the result is written back to the record as a snapshot.

    Raises:
        GrindNotFoundError: If the grind does not exist
        ParticipateRecordNotFoundError: If the user never joined this grind
    """
    with span("participation_service.compute_accounting"):
        grind = await _load_grind(grind_id)
        record = await get_participate_record(user_id=user_id, grind_id=grind_id)
        if record.quitted:
            return Accounting(missed_days=record.missed_days, total_penalty=record.total_penalty)

        missed_days = await _count_missed_days(user_id=user_id, grind_id=grind_id)
        accounting = Accounting(missed_days=missed_days, total_penalty=missed_days * grind.daily_penalty)

        if (accounting.missed_days, accounting.total_penalty) != (record.missed_days, record.total_penalty):
            await db_client.update_records(
                collection=COLLECTION,
                filter_query=f'id = "{record.id}" && quitted = "false"',
                data=accounting.model_dump(),
            )
        return accounting


async def quit_grind(*, user_id: str, grind_id: str) -> ParticipateRecord:
    """Quit a grind, forfeiting the full budget.

    The transition is a single conditional update on `quitted = false`, so
    exactly one of several concurrent calls succeeds.

    Raises:
        GrindNotFoundError: If the grind does not exist
        ParticipateRecordNotFoundError: If the user never joined this grind
        AlreadyQuittedError: If the user already quit
    """
    with span("participation_service.quit_grind"):
        grind = await _load_grind(grind_id)
        record = await get_participate_record(user_id=user_id, grind_id=grind_id)
        if record.quitted:
            raise AlreadyQuittedError

        missed_days = await _count_missed_days(user_id=user_id, grind_id=grind_id)
        updated = await db_client.update_records(
            collection=COLLECTION,
            filter_query=f'id = "{record.id}" && quitted = "false"',
            data={
                "quitted": True,
                "quitted_at": clock.utc_now(),
                "missed_days": missed_days,
                "total_penalty": grind.budget,
            },
        )
        if updated == 0:
            raise AlreadyQuittedError

        log_with_user_context(
            logger, "info", "Participant quit grind", user_id=user_id, grind_id=grind_id, penalty=grind.budget
        )
        return await get_participate_record(user_id=user_id, grind_id=grind_id)


async def add_participant(*, grind_id: str, user_id: str) -> ParticipateRecord:
    """Add a user to a grind and generate their tasks for the whole duration.

    Raises:
        GrindNotFoundError: If the grind does not exist
        ParticipantAlreadyExistsError: If the user already participates
    """
    with span("participation_service.add_participant"):
        grind = await _load_grind(grind_id)
        if await _find_record(user_id=user_id, grind_id=grind_id) is not None:
            raise ParticipantAlreadyExistsError

        record, created = await db_client.get_or_create_record(
            collection=COLLECTION,
            lookup={"user_id": user_id, "grind_id": grind_id},
            defaults={"missed_days": 0, "total_penalty": 0, "quitted": False},
        )
        if not created:
            raise ParticipantAlreadyExistsError

        await task_service.generate_tasks_for_participant(grind=grind, user_id=user_id)
        log_with_user_context(logger, "info", "Participant added", user_id=user_id, grind_id=grind_id)
        return ParticipateRecord(**record)


async def remove_participant(*, grind_id: str, user_id: str) -> None:
    """Erase a user's membership: their record and their tasks for the grind.

    Raises:
        ParticipantNotFoundError: If the user does not participate
    """
    with span("participation_service.remove_participant"):
        record = await _find_record(user_id=user_id, grind_id=grind_id)
        if record is None:
            raise ParticipantNotFoundError

        await db_client.delete_record(collection=COLLECTION, record_id=record.id)
        await task_service.delete_tasks_for_participant(grind_id=grind_id, user_id=user_id)
        log_with_user_context(logger, "info", "Participant removed", user_id=user_id, grind_id=grind_id)


async def list_participant_records(*, grind_id: str) -> list[ParticipateRecord]:
    """All participate records of a grind, in join order."""
    with span("participation_service.list_participant_records"):
        records = await db_client.get_full_list(
            collection=COLLECTION,
            filter_query=f'grind_id = "{db_client.sanitize_param(grind_id)}"',
            sort="+id",
        )
        return [ParticipateRecord(**r) for r in records]


async def list_participant_summaries(*, grind_id: str) -> list[ParticipantSummary]:
    """Participants of a grind with live accounting and their user details."""
    with span("participation_service.list_participant_summaries"):
        summaries = []
        for record in await list_participant_records(grind_id=grind_id):
            accounting = await compute_accounting(user_id=record.user_id, grind_id=grind_id)
            try:
                user = await db_client.get_record(collection="users", record_id=record.user_id)
            except db_client.RecordNotFoundError:
                logger.warning("Participant user missing", extra={"user_id": record.user_id, "grind_id": grind_id})
                user = {}
            summaries.append(
                ParticipantSummary(
                    user_id=record.user_id,
                    grind_id=grind_id,
                    username=user.get("username"),
                    email=user.get("email"),
                    missed_days=accounting.missed_days,
                    total_penalty=accounting.total_penalty,
                    quitted=record.quitted,
                    quitted_at=record.quitted_at,
                )
            )
        return summaries


async def delete_records_for_grind(*, grind_id: str) -> int:
    """Delete every participate record of a grind."""
    with span("participation_service.delete_records_for_grind"):
        return await db_client.delete_records(
            collection=COLLECTION,
            filter_query=f'grind_id = "{db_client.sanitize_param(grind_id)}"',
        )
