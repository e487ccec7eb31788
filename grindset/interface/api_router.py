"""HTTP API: JSON shaping over the engine services and error-to-status mapping."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from grindset.core.errors import (
    ErrorCategory,
    ErrorCode,
    ForbiddenError,
    GrindsetError,
    category_of,
    classify_error_with_response,
)
from grindset.domain.grind import Grind, GrindCreate, GrindUpdate
from grindset.domain.message import InvitationCreate, Message
from grindset.domain.task import TaskFinish
from grindset.interface.auth import current_user_id
from grindset.services import (
    grind_service,
    invitation_service,
    message_service,
    participation_service,
    task_service,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["grindset"])

STATUS_BY_CATEGORY = {
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.UPSTREAM_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _error_response(exc: Exception) -> JSONResponse:
    response = classify_error_with_response(exc)
    return JSONResponse(
        status_code=STATUS_BY_CATEGORY[category_of(exc)],
        content={"message": response.message, "errorCode": response.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map engine errors to HTTP responses with a {"message", "errorCode"} body."""

    async def handle_grindset_error(_request: Request, exc: Exception) -> JSONResponse:
        return _error_response(exc)

    async def handle_request_validation(_request: Request, exc: Exception) -> JSONResponse:
        logger.info("Rejected request body", extra={"error": str(exc)})
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"message": "The request is invalid.", "errorCode": ErrorCode.ERR_VALIDATION},
        )

    async def handle_unexpected(_request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error", extra={"error": str(exc), "type": type(exc).__name__})
        return _error_response(exc)

    app.add_exception_handler(GrindsetError, handle_grindset_error)
    app.add_exception_handler(PydanticValidationError, handle_grindset_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)


async def _serialize_grind(grind: Grind) -> dict[str, Any]:
    summaries = await participation_service.list_participant_summaries(grind_id=grind.id)
    return {
        **grind.model_dump(mode="json"),
        "end_date": grind.end_date.isoformat(),
        "participants": [s.model_dump(mode="json") for s in summaries],
    }


def _serialize_messages(messages: list[Message]) -> list[dict[str, Any]]:
    return [m.model_dump(mode="json") for m in messages]


def _require_participant(grind: Grind, user_id: str) -> None:
    if user_id not in grind.participant_ids:
        raise ForbiddenError("Only participants can modify this grind.")


# Grinds


@router.post("/grinds", status_code=status.HTTP_201_CREATED)
async def create_grind(request: GrindCreate, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    grind = await grind_service.start_grind_with_invitations(creator_id=user_id, request=request)
    return {"message": "Grind created successfully", "grind": await _serialize_grind(grind)}


@router.get("/grinds")
async def list_grinds(user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    grinds = await grind_service.list_user_grinds(user_id=user_id)
    return {"message": "Grinds fetched successfully", "grinds": [await _serialize_grind(g) for g in grinds]}


@router.get("/grinds/current")
async def get_current_grind(user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    grind = await grind_service.get_ongoing_grind_for_user(user_id=user_id)
    return {"message": "Grind fetched successfully", "grind": await _serialize_grind(grind)}


@router.get("/grinds/{grind_id}")
async def get_grind(grind_id: str, _user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    grind = await grind_service.get_grind(grind_id=grind_id)
    return {"message": "Grind fetched successfully", "grind": await _serialize_grind(grind)}


@router.patch("/grinds/{grind_id}")
async def update_grind(
    grind_id: str, update: GrindUpdate, user_id: str = Depends(current_user_id)
) -> dict[str, Any]:
    _require_participant(await grind_service.get_grind(grind_id=grind_id), user_id)
    grind = await grind_service.update_grind(grind_id=grind_id, update=update)
    return {"message": "Grind updated successfully", "grind": await _serialize_grind(grind)}


@router.delete("/grinds/{grind_id}")
async def delete_grind(grind_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    _require_participant(await grind_service.get_grind(grind_id=grind_id), user_id)
    await grind_service.delete_grind(grind_id=grind_id)
    return {"message": "Grind deleted successfully"}


@router.post("/grinds/{grind_id}/quit")
async def quit_grind(grind_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    record = await participation_service.quit_grind(user_id=user_id, grind_id=grind_id)
    return {"message": "Grind quitted successfully", "record": record.model_dump(mode="json")}


@router.get("/grinds/{grind_id}/progress")
async def get_progress(grind_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    entries = await task_service.get_progress(user_id=user_id, grind_id=grind_id)
    return {"message": "Progress fetched successfully", "progress": [e.model_dump(mode="json") for e in entries]}


# Tasks


@router.get("/tasks/today")
async def get_today_task(
    grind_id: str | None = Query(default=None, alias="grindID"),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    if grind_id is None:
        grind_id = (await grind_service.get_ongoing_grind_for_user(user_id=user_id)).id
    task = await task_service.get_today_task(user_id=user_id, grind_id=grind_id)
    return {"message": "Task fetched successfully", "task": task.model_dump(mode="json")}


@router.post("/tasks/finish")
async def finish_today_task(submission: TaskFinish, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    task = await task_service.finish_today_task(user_id=user_id, code=submission.code, language=submission.language)
    return {"message": "Task finished successfully", "task": task.model_dump(mode="json")}


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    set_problem: bool = Query(default=False, alias="setProblem"),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    task = await task_service.get_task(task_id=task_id)
    if task.user_id != user_id:
        raise ForbiddenError("This task belongs to another participant.")
    if set_problem:
        task = await task_service.assign_problem_if_needed(task=task)
    return {"message": "Task fetched successfully", "task": task.model_dump(mode="json")}


# Messages


@router.get("/messages/received")
async def list_received_messages(
    page: int = Query(default=1, ge=1), user_id: str = Depends(current_user_id)
) -> dict[str, Any]:
    messages = await message_service.list_received_messages(user_id=user_id, page=page)
    return {"message": "Messages fetched successfully", "messages": _serialize_messages(messages)}


@router.get("/messages/sent")
async def list_sent_messages(
    page: int = Query(default=1, ge=1), user_id: str = Depends(current_user_id)
) -> dict[str, Any]:
    messages = await message_service.list_sent_messages(user_id=user_id, page=page)
    return {"message": "Messages fetched successfully", "messages": _serialize_messages(messages)}


@router.post("/messages/{message_id}/read")
async def mark_message_read(message_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    message = await message_service.mark_read(message_id=message_id, acting_user_id=user_id)
    return {"message": "Message marked as read", "data": message.model_dump(mode="json")}


# Invitations


@router.post("/invitations", status_code=status.HTTP_201_CREATED)
async def create_invitation(request: InvitationCreate, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    invitation = await invitation_service.invite_by_email(
        sender_id=user_id, participant_email=request.participant_email, grind_id=request.grind_id
    )
    return {"message": "Invitation sent successfully", "invitation": invitation.model_dump(mode="json")}


@router.post("/invitations/{invitation_id}/accept")
async def accept_invitation(invitation_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    notification = await invitation_service.accept_invitation(invitation_id=invitation_id, acting_user_id=user_id)
    return {"message": "Invitation accepted successfully", "notification": notification.model_dump(mode="json")}


@router.post("/invitations/{invitation_id}/reject")
async def reject_invitation(invitation_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    notification = await invitation_service.reject_invitation(invitation_id=invitation_id, acting_user_id=user_id)
    return {"message": "Invitation rejected successfully", "notification": notification.model_dump(mode="json")}
