"""Grind lifecycle: creation, ongoing lookup, updates and cascading deletion."""

import logging
from datetime import datetime

from grindset.core import clock, db_client
from grindset.core.errors import (
    GrindNotFoundError,
    GrindsetError,
    ParticipantNotFoundError,
    UserNotFoundError,
)
from grindset.core.logging import log_with_user_context, span
from grindset.domain.grind import Grind, GrindCreate, GrindUpdate
from grindset.domain.user import User
from grindset.services import participation_service, task_service, user_service


logger = logging.getLogger(__name__)

COLLECTION = "grinds"


def get_grind_end(grind: Grind) -> datetime:
    """Moment the grind is over."""
    return grind.end_date


async def _resolve_participants(identifiers: list[str]) -> list[User]:
    users: dict[str, User] = {}
    for identifier in identifiers:
        try:
            user = await user_service.resolve_user(identifier=identifier)
        except UserNotFoundError as e:
            logger.warning("Participant could not be resolved", extra={"identifier": identifier})
            raise ParticipantNotFoundError(f"Participant {identifier} not found.") from e
        users.setdefault(user.id, user)
    return list(users.values())


async def _rollback_grind(grind_id: str) -> None:
    """Delete a half-created grind; failures are logged so the caller's error survives."""
    try:
        await delete_grind(grind_id=grind_id)
    except Exception as e:
        logger.error("Grind rollback failed", extra={"grind_id": grind_id, "error": str(e)})


async def get_grind(*, grind_id: str) -> Grind:
    """Get a grind with its participant IDs.

    Raises:
        GrindNotFoundError: If the grind does not exist
    """
    with span("grind_service.get_grind"):
        try:
            record = await db_client.get_record(collection=COLLECTION, record_id=grind_id)
        except db_client.RecordNotFoundError as e:
            raise GrindNotFoundError from e

        records = await participation_service.list_participant_records(grind_id=grind_id)
        return Grind(**record, participant_ids=[r.user_id for r in records])


async def create_grind(*, duration: int, budget: int, participants: list[str], start_date: datetime) -> Grind:
    """Create a grind with its participate records and every participant's tasks.

    Participants are emails or user IDs. Nothing is left behind on failure:
    once the grind row exists, any error deletes it again before re-raising.

    Raises:
        pydantic.ValidationError: If duration, budget or participants are invalid
        ParticipantNotFoundError: If a participant cannot be resolved
    """
    with span("grind_service.create_grind"):
        request = GrindCreate(duration=duration, budget=budget, participants=participants, start_date=start_date)
        users = await _resolve_participants(request.participants)

        record = await db_client.create_record(
            collection=COLLECTION,
            data={
                "duration": request.duration,
                "budget": request.budget,
                "start_date": clock.start_of_day(request.start_date),
            },
        )
        grind = Grind(**record)

        try:
            for user in users:
                await participation_service.create_participate_record(user_id=user.id, grind_id=grind.id)
                await task_service.generate_tasks_for_participant(grind=grind, user_id=user.id)
        except Exception:
            logger.error("Grind creation failed, rolling back", extra={"grind_id": grind.id})
            await _rollback_grind(grind.id)
            raise

        logger.info(
            "Grind created",
            extra={"grind_id": grind.id, "duration": grind.duration, "participants": len(users)},
        )
        return grind.model_copy(update={"participant_ids": [u.id for u in users]})


async def start_grind_with_invitations(*, creator_id: str, request: GrindCreate) -> Grind:
    """Create a grind joined only by its creator and invite everyone else listed.

    Every listed email must resolve; otherwise the grind is rolled back. A
    failed invitation is logged and skipped.

    Raises:
        UserNotFoundError: If the creator does not exist
        ParticipantNotFoundError: If a listed participant cannot be resolved
    """
    from grindset.services import invitation_service

    with span("grind_service.start_grind_with_invitations"):
        creator = await user_service.get_user(user_id=creator_id)
        grind = await create_grind(
            duration=request.duration,
            budget=request.budget,
            participants=[creator.id],
            start_date=request.start_date,
        )

        invitees = [p for p in request.participants if p.lower() != creator.email.lower() and p != creator.id]
        try:
            users = await _resolve_participants(invitees)
        except ParticipantNotFoundError:
            await _rollback_grind(grind.id)
            raise

        for user in users:
            if user.id == creator.id:
                continue
            try:
                await invitation_service.create_invitation(sender_id=creator.id, receiver_id=user.id, grind_id=grind.id)
            except (GrindsetError, db_client.DatabaseError) as e:
                log_with_user_context(
                    logger,
                    "warning",
                    "Invitation could not be sent, skipping",
                    user_id=user.id,
                    grind_id=grind.id,
                    error=str(e),
                )

        return grind


async def list_user_grinds(*, user_id: str) -> list[Grind]:
    """Every grind the user participates in, most recent first."""
    with span("grind_service.list_user_grinds"):
        records = await db_client.get_full_list(
            collection="participate_records",
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
            sort="-grind_id",
        )
        grinds = []
        for record in records:
            try:
                grinds.append(await get_grind(grind_id=record["grind_id"]))
            except GrindNotFoundError:
                logger.warning("Dangling participate record", extra={"record_id": record["id"]})
        return grinds


async def get_ongoing_grind_for_user(*, user_id: str) -> Grind:
    """The user's most recently created grind that they have not quit and that has not ended.

    Raises:
        GrindNotFoundError: If there is no such grind
    """
    with span("grind_service.get_ongoing_grind_for_user"):
        now = clock.utc_now()
        records = await db_client.get_full_list(
            collection="participate_records",
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}" && quitted = "false"',
            sort="-grind_id",
        )
        for record in records:
            try:
                grind = await get_grind(grind_id=record["grind_id"])
            except GrindNotFoundError:
                continue
            if grind.end_date > now:
                return grind

        raise GrindNotFoundError("No ongoing grind.")


async def update_grind(*, grind_id: str, update: GrindUpdate) -> Grind:
    """Change a grind's duration and/or budget.

    Existing task rows are left as they are when the duration changes.

    Raises:
        GrindNotFoundError: If the grind does not exist
    """
    with span("grind_service.update_grind"):
        grind = await get_grind(grind_id=grind_id)
        data = update.model_dump(exclude_none=True)

        if "duration" in data and data["duration"] != grind.duration:
            task_count = await db_client.count_records(
                collection="tasks",
                filter_query=f'grind_id = "{db_client.sanitize_param(grind_id)}"',
            )
            if task_count:
                logger.warning(
                    "Duration changed on a grind with tasks; tasks are not reconciled",
                    extra={"grind_id": grind_id, "old": grind.duration, "new": data["duration"]},
                )

        await db_client.update_record(collection=COLLECTION, record_id=grind_id, data=data)
        logger.info("Grind updated", extra={"grind_id": grind_id, "fields": sorted(data)})
        return await get_grind(grind_id=grind_id)


async def delete_grind(*, grind_id: str) -> None:
    """Delete a grind with all of its tasks and participate records.

    Raises:
        GrindNotFoundError: If the grind does not exist
    """
    with span("grind_service.delete_grind"):
        try:
            await db_client.get_record(collection=COLLECTION, record_id=grind_id)
        except db_client.RecordNotFoundError as e:
            raise GrindNotFoundError from e

        tasks_deleted = await task_service.delete_tasks_for_grind(grind_id=grind_id)
        records_deleted = await participation_service.delete_records_for_grind(grind_id=grind_id)
        await db_client.delete_record(collection=COLLECTION, record_id=grind_id)

        logger.info(
            "Grind deleted",
            extra={"grind_id": grind_id, "tasks_deleted": tasks_deleted, "records_deleted": records_deleted},
        )
