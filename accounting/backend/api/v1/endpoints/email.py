"""
Email Client API Endpoints.

Mailbox configuration for the current user and for the company, sending
mail, reading the inbox and company drafts. Gated by the `email-client`
module.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from accounting.backend.core.dependencies import DbSession, ManagerUser, require_module
from accounting.backend.models.user import User
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.email import (
    DraftCreate,
    DraftResponse,
    DraftUpdate,
    EmailConfigCreate,
    EmailConfigResponse,
    EmailConfigUpdate,
    InboxMessageResponse,
    SendEmailRequest,
    SendEmailResult,
)
from accounting.backend.services.email import EmailService
from accounting.backend.services.email_drafts import EmailDraftService

router = APIRouter()

MODULE = "email-client"
MailReader = Annotated[User, Depends(require_module(MODULE, "read"))]
MailWriter = Annotated[User, Depends(require_module(MODULE, "write"))]


# User mailbox


@router.get("/config", response_model=ApiResponse[EmailConfigResponse], summary="Own mailbox settings")
async def get_user_config(user: MailReader, db: DbSession) -> ApiResponse[EmailConfigResponse]:
    config = await EmailService(db).get_user_config(user)
    return ApiResponse(data=EmailConfigResponse.model_validate(config))


@router.post(
    "/config",
    response_model=ApiResponse[EmailConfigResponse],
    status_code=201,
    summary="Create own mailbox settings",
    description="Passwords are stored encrypted and never returned.",
)
async def create_user_config(
    data: EmailConfigCreate,
    user: MailWriter,
    db: DbSession,
) -> ApiResponse[EmailConfigResponse]:
    config = await EmailService(db).create_user_config(user, data)
    return ApiResponse(data=EmailConfigResponse.model_validate(config))


@router.patch("/config", response_model=ApiResponse[EmailConfigResponse], summary="Update own mailbox settings")
async def update_user_config(
    data: EmailConfigUpdate,
    user: MailWriter,
    db: DbSession,
) -> ApiResponse[EmailConfigResponse]:
    config = await EmailService(db).update_user_config(user, data)
    return ApiResponse(data=EmailConfigResponse.model_validate(config))


@router.delete("/config", status_code=204, summary="Delete own mailbox settings")
async def delete_user_config(user: MailWriter, db: DbSession) -> None:
    await EmailService(db).delete_user_config(user)


# Company mailbox


@router.get("/company-config", response_model=ApiResponse[EmailConfigResponse], summary="Company mailbox settings")
async def get_company_config(user: ManagerUser, db: DbSession) -> ApiResponse[EmailConfigResponse]:
    config = await EmailService(db).get_company_config(user)
    return ApiResponse(data=EmailConfigResponse.model_validate(config))


@router.post(
    "/company-config",
    response_model=ApiResponse[EmailConfigResponse],
    status_code=201,
    summary="Create company mailbox settings",
    description="Used for sending offers and as a fallback for employees without their own mailbox.",
)
async def create_company_config(
    data: EmailConfigCreate,
    user: ManagerUser,
    db: DbSession,
) -> ApiResponse[EmailConfigResponse]:
    config = await EmailService(db).create_company_config(user, data)
    return ApiResponse(data=EmailConfigResponse.model_validate(config))


@router.patch(
    "/company-config",
    response_model=ApiResponse[EmailConfigResponse],
    summary="Update company mailbox settings",
)
async def update_company_config(
    data: EmailConfigUpdate,
    user: ManagerUser,
    db: DbSession,
) -> ApiResponse[EmailConfigResponse]:
    config = await EmailService(db).update_company_config(user, data)
    return ApiResponse(data=EmailConfigResponse.model_validate(config))


@router.delete("/company-config", status_code=204, summary="Delete company mailbox settings")
async def delete_company_config(user: ManagerUser, db: DbSession) -> None:
    await EmailService(db).delete_company_config(user)


# Mail


@router.post(
    "/send",
    response_model=ApiResponse[SendEmailResult],
    summary="Send an e-mail",
    description="Uses the user's mailbox, falling back to the company mailbox.",
)
async def send_email(data: SendEmailRequest, user: MailWriter, db: DbSession) -> ApiResponse[SendEmailResult]:
    result = await EmailService(db).send_email(
        user, [str(a) for a in data.to], data.subject, data.body, [str(a) for a in data.cc],
    )
    return ApiResponse(data=result)


@router.get("/inbox", response_model=ApiResponse[list[InboxMessageResponse]], summary="Newest inbox messages")
async def list_inbox(
    user: MailReader,
    db: DbSession,
    limit: int | None = Query(default=None, ge=1, le=100),
) -> ApiResponse[list[InboxMessageResponse]]:
    messages = await EmailService(db).list_inbox(user, limit)
    return ApiResponse(data=[InboxMessageResponse.model_validate(m) for m in messages])


# Drafts


@router.get("/drafts", response_model=ApiResponse[list[DraftResponse]], summary="Company drafts")
async def list_drafts(
    user: MailReader,
    db: DbSession,
    mine: bool = Query(default=False, description="Only drafts written by the current user"),
) -> ApiResponse[list[DraftResponse]]:
    drafts = await EmailDraftService(db).list_drafts(user, mine)
    return ApiResponse(data=[DraftResponse.model_validate(d) for d in drafts])


@router.post("/drafts", response_model=ApiResponse[DraftResponse], status_code=201, summary="Save a draft")
async def create_draft(data: DraftCreate, user: MailWriter, db: DbSession) -> ApiResponse[DraftResponse]:
    draft = await EmailDraftService(db).create(user, data)
    return ApiResponse(data=DraftResponse.model_validate(draft))


@router.get("/drafts/{draft_id}", response_model=ApiResponse[DraftResponse], summary="Get a draft")
async def get_draft(draft_id: str, user: MailReader, db: DbSession) -> ApiResponse[DraftResponse]:
    draft = await EmailDraftService(db).find_one(user, draft_id)
    return ApiResponse(data=DraftResponse.model_validate(draft))


@router.patch(
    "/drafts/{draft_id}",
    response_model=ApiResponse[DraftResponse],
    summary="Update a draft",
    description="Only the author or a manager.",
)
async def update_draft(
    draft_id: str,
    data: DraftUpdate,
    user: MailWriter,
    db: DbSession,
) -> ApiResponse[DraftResponse]:
    draft = await EmailDraftService(db).update(user, draft_id, data)
    return ApiResponse(data=DraftResponse.model_validate(draft))


@router.delete("/drafts/{draft_id}", status_code=204, summary="Delete a draft")
async def delete_draft(draft_id: str, user: MailWriter, db: DbSession) -> None:
    await EmailDraftService(db).remove(user, draft_id)


@router.post(
    "/drafts/{draft_id}/send",
    response_model=ApiResponse[SendEmailResult],
    summary="Send a draft",
    description="Sent like POST /send; the draft is deleted afterwards.",
)
async def send_draft(draft_id: str, user: MailWriter, db: DbSession) -> ApiResponse[SendEmailResult]:
    return ApiResponse(data=await EmailDraftService(db).send(user, draft_id))
