"""FastAPI service account provisioning endpoints.

WS   /v1/accounts/{account_id}/actors/service_accounts/new/live                 — live form
POST /v1/accounts/{account_id}/actors/service_accounts                          — one-shot submit
GET  /v1/accounts/{account_id}/actors/service_accounts/{actor_id}/new_identity — hand-off landing

The live form and the one-shot submit share the WorkflowController; the
one-shot submit simply uses a fresh workflow session per request.
"""

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field

from src.api.dependencies import get_actor_repo, get_workflow_controller
from src.api.live import BINARY_FRAME_ERROR, LiveChannel
from src.models.common import ActorType
from src.provisioning.errors import (
    AccountNotFoundError,
    ProvisioningUnavailableError,
    StorageUnavailableError,
)
from src.provisioning.workflow import (
    FieldErrorsResponse,
    NavigateResponse,
    TenantNoticeResponse,
    WorkflowController,
)
from src.repositories.actors import ActorRepository

router = APIRouter(prefix="/v1/accounts", tags=["service_accounts"])

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class SubmitServiceAccountRequest(BaseModel):
    actor: dict[str, Any] = Field(default_factory=dict)


class SubmitServiceAccountResponse(BaseModel):
    actor_id: str
    navigate: str


class NewIdentityResponse(BaseModel):
    actor_id: str
    name: str
    type: str
    memberships: list[str]


# ---------------------------------------------------------------------------
# Live form
# ---------------------------------------------------------------------------


@router.websocket("/{account_id}/actors/service_accounts/new/live")
async def new_service_account_live(
    websocket: WebSocket,
    account_id: UUID,
    controller: WorkflowController = Depends(get_workflow_controller),
) -> None:
    """Live new-service-account form: one workflow session per connection."""
    await websocket.accept()
    try:
        session, form = await controller.open_session(account_id)
    except (AccountNotFoundError, ProvisioningUnavailableError) as exc:
        logger.info("live_mount_refused", account_id=str(account_id), reason=str(exc))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="not_found")
        return

    channel = LiveChannel(controller, session)
    with structlog.contextvars.bound_contextvars(
        account_id=str(account_id), session_id=str(session.session_id),
    ):
        await websocket.send_json(form.to_frame())
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
                raw = message.get("text")
                if raw is None:
                    await websocket.send_json({"error": BINARY_FRAME_ERROR})
                    continue
                await websocket.send_json(await channel.handle_text(raw))
        except WebSocketDisconnect:
            logger.info("live_channel_closed", state=session.state.value)


# ---------------------------------------------------------------------------
# One-shot submit
# ---------------------------------------------------------------------------


@router.post(
    "/{account_id}/actors/service_accounts",
    status_code=201,
    response_model=SubmitServiceAccountResponse,
)
async def create_service_account(
    account_id: UUID,
    body: SubmitServiceAccountRequest,
    controller: WorkflowController = Depends(get_workflow_controller),
) -> SubmitServiceAccountResponse:
    """Validate, check quota and create a service account in one request."""
    try:
        session, _form = await controller.open_session(account_id)
        result = await controller.submit(session, body.actor)
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail=f"Account {account_id} not found.")
    except ProvisioningUnavailableError:
        raise HTTPException(
            status_code=404,
            detail=f"Service accounts are not available for account {account_id}.",
        )
    except StorageUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    if isinstance(result, TenantNoticeResponse):
        raise HTTPException(status_code=403, detail=result.to_frame())
    if isinstance(result, FieldErrorsResponse):
        raise HTTPException(status_code=422, detail=result.to_frame())

    assert isinstance(result, NavigateResponse)
    return SubmitServiceAccountResponse(actor_id=str(result.actor_id), navigate=result.navigate)


# ---------------------------------------------------------------------------
# Hand-off landing
# ---------------------------------------------------------------------------


@router.get(
    "/{account_id}/actors/service_accounts/{actor_id}/new_identity",
    response_model=NewIdentityResponse,
)
async def new_identity(
    account_id: UUID,
    actor_id: UUID,
    repo: ActorRepository = Depends(get_actor_repo),
) -> NewIdentityResponse:
    """Resolve the hand-off id for the credential issuance stage."""
    actor = await repo.get_in_account(account_id, actor_id)
    if actor is None or actor.type != ActorType.SERVICE_ACCOUNT:
        raise HTTPException(status_code=404, detail=f"Service account {actor_id} not found.")

    return NewIdentityResponse(
        actor_id=str(actor.id),
        name=actor.name,
        type=actor.type.value,
        memberships=sorted(str(g) for g in actor.membership_refs),
    )
