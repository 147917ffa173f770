"""
Email Draft Service.

Drafts are shared within the company: everyone with the email module can
read them, only the author or a manager may change, delete or send one.
Sending goes through EmailService and removes the draft.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import AuthorizationError, ValidationError
from accounting.backend.models.email_draft import EmailDraft
from accounting.backend.models.user import User
from accounting.backend.repositories.email_draft import EmailDraftRepository
from accounting.backend.schemas.email import DraftCreate, DraftUpdate, SendEmailResult
from accounting.backend.services.base import BaseService
from accounting.backend.services.email import EmailService
from accounting.backend.services.rbac import MANAGER_ROLES
from accounting.backend.services.tenant import TenantService


class EmailDraftService(BaseService):
    def __init__(self, session: AsyncSession, mailer: EmailService | None = None) -> None:
        super().__init__(session)
        self.repo = EmailDraftRepository(session)
        self.tenant = TenantService(session)
        self.mailer = mailer or EmailService(session)

    async def list_drafts(self, user: User, mine: bool = False) -> list[EmailDraft]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.list_for_company(company_id, user.id if mine else None)

    async def find_one(self, user: User, draft_id: str) -> EmailDraft:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.get_in_company(draft_id, company_id)

    async def _find_editable(self, user: User, draft_id: str) -> EmailDraft:
        draft = await self.find_one(user, draft_id)
        if draft.user_id != user.id and user.role not in MANAGER_ROLES:
            raise AuthorizationError("Only the author or a manager can change this draft")
        return draft

    async def create(self, user: User, data: DraftCreate) -> EmailDraft:
        company_id = await self.tenant.get_effective_company_id(user)
        draft = await self._execute_db_operation(
            "create draft",
            self.repo.create(
                company_id=company_id,
                user_id=user.id,
                to=[str(a) for a in data.to],
                cc=[str(a) for a in data.cc],
                subject=data.subject,
                body=data.body,
            ),
        )
        self._log_operation("Draft created", draft_id=draft.id)
        return draft

    async def update(self, user: User, draft_id: str, data: DraftUpdate) -> EmailDraft:
        draft = await self._find_editable(user, draft_id)
        changes = data.model_dump(exclude_unset=True)
        for key in ("to", "cc"):
            if key in changes:
                changes[key] = [str(a) for a in changes[key] or []]
        if not changes:
            return draft
        return await self.repo.update_instance(draft, **changes)

    async def remove(self, user: User, draft_id: str) -> None:
        draft = await self._find_editable(user, draft_id)
        await self.repo.delete_instance(draft)
        self._log_operation("Draft deleted", draft_id=draft_id)

    async def send(self, user: User, draft_id: str) -> SendEmailResult:
        """
        Raises:
            ValidationError: If the draft has no recipient or no mailbox is configured
            ExternalServiceError: If the SMTP server rejects the message
        """
        draft = await self._find_editable(user, draft_id)
        if not draft.to:
            raise ValidationError("Draft has no recipients", details={"id": draft.id})

        result = await self.mailer.send_email(
            user, list(draft.to), draft.subject or "", draft.body or "", list(draft.cc),
        )
        await self.repo.delete_instance(draft)
        self._log_operation("Draft sent", draft_id=draft_id, recipients=len(result.recipients))
        return result
