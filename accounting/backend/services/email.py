"""
Email Service.

Mailbox settings per user or per company, and sending/reading mail with
them. Passwords are encrypted before they reach the database and are only
decrypted to open a connection.
"""

from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.config import get_app_config
from accounting.backend.core.exceptions import ConflictError, NotFoundError, ValidationError
from accounting.backend.core.security import decrypt_secret, encrypt_secret
from accounting.backend.gateway.adapters.base import InboxMessage, MailTransport, OutgoingEmail
from accounting.backend.gateway.adapters.smtp_imap import MailAccount, SmtpImapTransport
from accounting.backend.models.email_config import EmailConfiguration
from accounting.backend.models.user import User
from accounting.backend.repositories.email_config import EmailConfigurationRepository
from accounting.backend.schemas.email import EmailConfigCreate, EmailConfigUpdate, SendEmailResult
from accounting.backend.services.base import BaseService
from accounting.backend.services.tenant import TenantService

TransportFactory = Callable[[MailAccount], MailTransport]

SECRET_FIELDS = ("smtp_password", "imap_password")
_NON_NULLABLE = frozenset(EmailConfigUpdate.model_fields) - {"display_name"}


def _encrypt_secrets(values: dict[str, Any]) -> dict[str, Any]:
    for name in SECRET_FIELDS:
        if values.get(name):
            values[name] = encrypt_secret(values[name])
    return values


def account_from(config: EmailConfiguration) -> MailAccount:
    """
    Raises:
        ValidationError: If the stored passwords cannot be decrypted
    """
    try:
        smtp_password = decrypt_secret(config.smtp_password)
        imap_password = decrypt_secret(config.imap_password)
    except ValueError:
        raise ValidationError("Stored email credentials are invalid, please save them again")
    return MailAccount(
        smtp_host=config.smtp_host,
        smtp_port=config.smtp_port,
        smtp_secure=config.smtp_secure,
        smtp_user=config.smtp_user,
        smtp_password=smtp_password,
        imap_host=config.imap_host,
        imap_port=config.imap_port,
        imap_tls=config.imap_tls,
        imap_user=config.imap_user,
        imap_password=imap_password,
    )


class EmailService(BaseService):
    def __init__(
        self,
        session: AsyncSession,
        transport_factory: TransportFactory = SmtpImapTransport,
    ) -> None:
        super().__init__(session)
        self.repo = EmailConfigurationRepository(session)
        self.tenant = TenantService(session)
        self._transport_factory = transport_factory

    # Configuration

    async def get_user_config(self, user: User) -> EmailConfiguration:
        config = await self.repo.get_for_user(user.id)
        if config is None:
            raise NotFoundError("Email configuration not found")
        return config

    async def create_user_config(self, user: User, data: EmailConfigCreate) -> EmailConfiguration:
        if await self.repo.get_for_user(user.id) is not None:
            raise ConflictError("Email configuration already exists")
        config = await self._execute_db_operation(
            "create user email config",
            self.repo.create(**_encrypt_secrets(data.model_dump()), user_id=user.id),
        )
        self._log_operation("User email configuration created", user_id=user.id)
        return config

    async def update_user_config(self, user: User, data: EmailConfigUpdate) -> EmailConfiguration:
        return await self._update(await self.get_user_config(user), data)

    async def delete_user_config(self, user: User) -> None:
        await self.repo.delete_instance(await self.get_user_config(user))
        self._log_operation("User email configuration deleted", user_id=user.id)

    async def get_company_config(self, user: User) -> EmailConfiguration:
        company_id = await self.tenant.get_effective_company_id(user)
        config = await self.repo.get_for_company(company_id)
        if config is None:
            raise NotFoundError("Company email configuration not found")
        return config

    async def create_company_config(self, user: User, data: EmailConfigCreate) -> EmailConfiguration:
        company_id = await self.tenant.get_effective_company_id(user)
        if await self.repo.get_for_company(company_id) is not None:
            raise ConflictError("Company email configuration already exists")
        config = await self._execute_db_operation(
            "create company email config",
            self.repo.create(**_encrypt_secrets(data.model_dump()), company_id=company_id),
        )
        self._log_operation("Company email configuration created", company_id=company_id)
        return config

    async def update_company_config(self, user: User, data: EmailConfigUpdate) -> EmailConfiguration:
        return await self._update(await self.get_company_config(user), data)

    async def delete_company_config(self, user: User) -> None:
        config = await self.get_company_config(user)
        await self.repo.delete_instance(config)
        self._log_operation("Company email configuration deleted", company_id=config.company_id)

    async def _update(self, config: EmailConfiguration, data: EmailConfigUpdate) -> EmailConfiguration:
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key not in _NON_NULLABLE
        }
        if not changes:
            return config
        self._log_operation("Updating email configuration", config_id=config.id, fields=sorted(changes))
        return await self.repo.update_instance(config, **_encrypt_secrets(changes))

    # Mail

    async def resolve_config(self, user: User) -> EmailConfiguration:
        """
        The user's own mailbox, falling back to the company mailbox.

        Raises:
            ValidationError: If neither is configured and active
        """
        config = await self.repo.get_for_user(user.id)
        if config is None or not config.is_active:
            company_id = await self.tenant.get_effective_company_id(user)
            config = await self.repo.get_for_company(company_id)
        if config is None or not config.is_active:
            raise ValidationError("Email not configured")
        return config

    async def deliver(
        self,
        config: EmailConfiguration,
        to: list[str],
        subject: str,
        body: str,
        cc: list[str] | None = None,
    ) -> None:
        """
        Raises:
            ExternalServiceError: If the SMTP server rejects or cannot be reached
        """
        transport = self._transport_factory(account_from(config))
        await transport.send(
            OutgoingEmail(
                to=to,
                subject=subject,
                body=body,
                sender=config.smtp_user,
                sender_name=config.display_name,
                cc=cc or [],
            )
        )

    async def send_email(
        self,
        user: User,
        to: list[str],
        subject: str,
        body: str,
        cc: list[str] | None = None,
    ) -> SendEmailResult:
        config = await self.resolve_config(user)
        await self.deliver(config, to, subject, body, cc)
        self._log_operation("Email sent", user_id=user.id, recipients=len(to) + len(cc or []))
        return SendEmailResult(sent=True, recipients=[*to, *(cc or [])])

    async def list_inbox(self, user: User, limit: int | None = None) -> list[InboxMessage]:
        config = await self.resolve_config(user)
        limit = limit or get_app_config().integrations.email.inbox_default_limit
        transport = self._transport_factory(account_from(config))
        return await transport.fetch_headers(limit)
