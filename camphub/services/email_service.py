"""Outbound email over SMTP, using either a licensee's own mailbox or the platform account."""
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import NamedTuple, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.crypto import decrypt_json
from ..models.tenant import Tenant

logger = logging.getLogger(__name__)

# provider alias -> (host, port, security)
PROVIDER_PRESETS = {
    "gmail": ("smtp.gmail.com", 587, "starttls"),
    "google": ("smtp.gmail.com", 587, "starttls"),
    "gsuite": ("smtp.gmail.com", 587, "starttls"),
    "outlook": ("smtp.office365.com", 587, "starttls"),
    "office365": ("smtp.office365.com", 587, "starttls"),
    "microsoft": ("smtp.office365.com", 587, "starttls"),
    "sendgrid": ("smtp.sendgrid.net", 587, "starttls"),
}


class SmtpAccount(NamedTuple):
    host: str
    port: int
    username: str
    password: str
    from_email: str
    from_name: Optional[str] = None
    security: str = "starttls"

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>" if self.from_name else self.from_email


def platform_account() -> Optional[SmtpAccount]:
    if not (settings.SMTP_HOST and settings.SMTP_USERNAME and settings.SMTP_PASSWORD):
        return None
    return SmtpAccount(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM,
        from_name=settings.SMTP_FROM_NAME,
        security=settings.SMTP_SECURITY,
    )


def tenant_account(tenant: Tenant) -> Optional[SmtpAccount]:
    """Build the licensee's mailbox from its stored config; None when anything required is missing."""
    config = tenant.smtp_config or {}
    if not config:
        return None
    creds = decrypt_json(tenant.smtp_credentials_encrypted or "")
    preset_host, preset_port, preset_security = PROVIDER_PRESETS.get(
        (config.get("provider") or "").lower(), (None, 587, "starttls")
    )

    host = config.get("host") or preset_host
    username = creds.get("username") or config.get("username")
    password = creds.get("password")
    if not (host and username and password):
        return None
    return SmtpAccount(
        host=host,
        port=int(config.get("port") or preset_port),
        username=username,
        password=password,
        from_email=config.get("from_email") or username,
        from_name=config.get("from_name") or tenant.name,
        security=(config.get("security") or preset_security).lower(),
    )


def _send_smtp(account: SmtpAccount, *, to_email: str, subject: str, body: str, html: bool = False) -> bool:
    if html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "html", "utf-8"))
    else:
        msg = MIMEText(body, "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = account.sender
    msg["To"] = to_email

    smtp_cls = smtplib.SMTP_SSL if account.security == "ssl" else smtplib.SMTP
    try:
        with smtp_cls(account.host, account.port) as server:
            if account.security == "starttls":
                server.starttls()
            server.login(account.username, account.password)
            server.sendmail(account.from_email, [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"SMTP send to {to_email} via {account.host}:{account.port} failed: {e}")
        return False
    return True


def send_email(to_email: str, subject: str, body: str, html: bool = False) -> bool:
    """Send through the platform account. An unconfigured platform account is a silent no-op."""
    account = platform_account()
    if account is None:
        logger.debug(f"SMTP not configured; skipping email '{subject}' to {to_email}")
        return True
    return _send_smtp(account, to_email=to_email, subject=subject, body=body, html=html)


async def send_email_for_tenant(
    db: AsyncSession,
    *,
    tenant_id: Optional[str],
    to_email: str,
    subject: str,
    body: str,
    html: bool = True,
) -> bool:
    tenant = await db.get(Tenant, tenant_id) if tenant_id else None
    account = tenant_account(tenant) if tenant else None
    if account is None:
        return send_email(to_email, subject, body, html=html)
    return _send_smtp(account, to_email=to_email, subject=subject, body=body, html=html)


async def notify(
    db: AsyncSession,
    *,
    tenant_id: Optional[str],
    to_email: Optional[str],
    template: tuple,
) -> bool:
    """Send a rendered ``(subject, html)`` template; failures are logged and never raised."""
    if not to_email:
        return False
    subject, html = template
    try:
        return await send_email_for_tenant(
            db, tenant_id=tenant_id, to_email=to_email, subject=subject, body=html, html=True
        )
    except Exception as e:
        logger.warning(f"Notification '{subject}' to {to_email} failed: {e}")
        return False
