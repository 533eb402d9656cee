"""
Complaint Notification Dispatcher

Sends lifecycle emails without holding up the request that caused them:
- ``submit`` schedules delivery as a detached task and returns immediately
- Delivery runs in its own database session, never the request's
- Failures are logged and discarded; nothing is retried or surfaced

Recipients for an event:
- the system ``admin_email`` (when set)
- every active administrator, plus the demo principal, whose preferences
  enable the event kind; each at their notification email, falling back to
  the account email
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Callable, List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.settings import EmailTestResult
from api.services.email_templates import (
    RenderedEmail,
    render_new_complaint,
    render_status_changed,
    render_test_email,
)
from core.async_utils import run_blocking
from core.config import Settings
from core.encryption import EncryptionError, decrypt_value
from crud import settings_crud, user_crud
from db.enums import NotificationKind
from db.models import Complaint, SystemSettings, UserSettings

logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo"


@dataclass(frozen=True)
class ComplaintSnapshot:
    """Immutable copy of the complaint fields an email needs."""

    id: str
    title: str
    description: str
    category: str
    priority: str
    status: str
    user_email: str
    date_submitted: datetime

    @classmethod
    def from_model(cls, complaint: Complaint) -> "ComplaintSnapshot":
        return cls(
            id=str(complaint.id),
            title=complaint.title,
            description=complaint.description,
            category=complaint.category.value,
            priority=complaint.priority.value,
            status=complaint.status.value,
            user_email=complaint.user_email,
            date_submitted=complaint.date_submitted,
        )


@dataclass(frozen=True)
class NotificationEvent:
    """
    One lifecycle transition to announce.

    ``previous_status`` is set for STATUS_CHANGED only. ``recipient`` pins
    delivery to a single address instead of the resolved audience.
    """

    kind: NotificationKind
    complaint: ComplaintSnapshot
    previous_status: Optional[str] = None
    recipient: Optional[str] = None


@dataclass(frozen=True)
class SmtpCredentials:
    host: str
    port: int
    user: str
    password: str
    from_name: str


class SmtpTransport:
    """Blocking smtplib delivery, run off the event loop."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    async def send(
        self, credentials: SmtpCredentials, recipient: str, email: RenderedEmail
    ) -> None:
        await run_blocking(self._send_sync, credentials, recipient, email)

    def _send_sync(
        self, credentials: SmtpCredentials, recipient: str, email: RenderedEmail
    ) -> None:
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((credentials.from_name, credentials.user))
        msg["To"] = recipient
        msg["Subject"] = email.subject
        msg.attach(MIMEText(email.text, "plain", "utf-8"))
        msg.attach(MIMEText(email.html, "html", "utf-8"))

        if credentials.port == 465:
            server = smtplib.SMTP_SSL(credentials.host, credentials.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(credentials.host, credentials.port, timeout=self.timeout)

        with server:
            if credentials.port == 587:
                server.starttls()
            if credentials.user and credentials.password:
                server.login(credentials.user, credentials.password)
            server.send_message(msg)


def dedupe_addresses(addresses: List[str]) -> List[str]:
    """Case-insensitive de-duplication that keeps first-seen order."""
    seen: Set[str] = set()
    unique = []
    for address in addresses:
        key = address.strip().lower()
        if key and key not in seen:
            seen.add(key)
            unique.append(address.strip())
    return unique


def wants(user_settings: Optional[UserSettings], kind: NotificationKind) -> bool:
    """Whether a preference row enables ``kind``. No row means the defaults (on)."""
    if user_settings is None:
        return True
    if kind == NotificationKind.NEW_COMPLAINT:
        return user_settings.receive_new_complaints
    return user_settings.receive_status_updates


class NotificationDispatcher:
    """
    Fire-and-forget email delivery for complaint lifecycle events.

    A single instance lives on ``app.state``. In-flight tasks are tracked so
    they are not garbage collected mid-send and can be drained on shutdown.
    """

    def __init__(
        self,
        session_factory: Callable,
        config: Settings,
        transport: Optional[SmtpTransport] = None,
    ):
        self._session_factory = session_factory
        self._secret_key = config.security.secret_key
        self._email_config = config.email
        self._transport = transport or SmtpTransport(timeout=config.email.smtp_timeout)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, event: NotificationEvent) -> asyncio.Task:
        """Schedule delivery of ``event`` and return without waiting."""
        task = asyncio.create_task(
            self.dispatch(event),
            name=f"notify-{event.kind.value}-{event.complaint.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        logger.debug(
            f"[NOTIFICATION] Queued {event.kind.value} for complaint {event.complaint.id}"
        )
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"[NOTIFICATION] Task {task.get_name()} cancelled before completion")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"[NOTIFICATION] Task {task.get_name()} failed: {type(exc).__name__}: {exc}"
            )

    async def dispatch(self, event: NotificationEvent) -> int:
        """
        Deliver one event.

        Returns:
            Number of recipients the message was accepted for. Errors are
            logged and reported as 0; they never propagate.
        """
        try:
            return await self._deliver(event)
        except Exception as e:
            logger.error(
                f"[NOTIFICATION] Dropped {event.kind.value} for complaint "
                f"{event.complaint.id}: {type(e).__name__}: {e}"
            )
            return 0

    async def _deliver(self, event: NotificationEvent) -> int:
        async with self._session_factory() as db:
            system = await settings_crud.get_system_settings(db)
            if system is None or not system.is_configured:
                logger.info(
                    f"[NOTIFICATION] Email not configured, skipping {event.kind.value} "
                    f"for complaint {event.complaint.id}"
                )
                return 0

            if event.recipient:
                recipients = [event.recipient]
            else:
                recipients = await self.resolve_recipients(db, event.kind, system)

        if not recipients:
            logger.info(
                f"[NOTIFICATION] No recipients opted in to {event.kind.value} "
                f"for complaint {event.complaint.id}"
            )
            return 0

        credentials = self._credentials(system)
        email = self._render(event, system)

        sent = 0
        for recipient in recipients:
            try:
                await self._transport.send(credentials, recipient, email)
                sent += 1
            except (smtplib.SMTPException, OSError) as e:
                logger.error(
                    f"[NOTIFICATION] Failed to send {event.kind.value} to {recipient}: {e}"
                )

        logger.info(
            f"[NOTIFICATION] Sent {event.kind.value} for complaint {event.complaint.id} "
            f"to {sent}/{len(recipients)} recipients"
        )
        return sent

    async def resolve_recipients(
        self, db: AsyncSession, kind: NotificationKind, system: SystemSettings
    ) -> List[str]:
        """
        Addresses that should receive ``kind``.

        The configured ``admin_email`` always receives notifications;
        individual administrators are filtered by their own preferences.
        """
        candidates: List[str] = []
        if system.admin_email:
            candidates.append(system.admin_email)

        admins = await user_crud.list_active_admins(db)
        prefs = await settings_crud.get_user_settings_map(
            db, [str(admin.id) for admin in admins] + [DEMO_USER_ID]
        )

        for admin in admins:
            admin_prefs = prefs.get(str(admin.id))
            if wants(admin_prefs, kind):
                override = admin_prefs.notification_email if admin_prefs else ""
                candidates.append(override or admin.email)

        # The demo principal has no account email; only an explicit address counts
        demo_prefs = prefs.get(DEMO_USER_ID)
        if demo_prefs is not None and demo_prefs.notification_email and wants(demo_prefs, kind):
            candidates.append(demo_prefs.notification_email)

        return dedupe_addresses(candidates)

    def _credentials(self, system: SystemSettings) -> SmtpCredentials:
        """
        Raises:
            EncryptionError: If the stored password cannot be decrypted
        """
        password = decrypt_value(system.encrypted_smtp_pass or "", self._secret_key)
        return SmtpCredentials(
            host=system.smtp_host,
            port=system.smtp_port,
            user=system.smtp_user,
            password=password,
            from_name=self._email_config.from_name,
        )

    def _render(self, event: NotificationEvent, system: SystemSettings) -> RenderedEmail:
        if event.kind == NotificationKind.NEW_COMPLAINT:
            return render_new_complaint(event.complaint, system.system_name, system.base_url)
        return render_status_changed(
            event.complaint, event.previous_status, system.system_name, system.base_url
        )

    async def send_test_email(self, system: SystemSettings, recipient: str) -> EmailTestResult:
        """
        Send a test message synchronously and report the outcome.

        Unlike lifecycle events, the caller waits and sees the result.
        """
        if not (system.smtp_host and system.smtp_user and system.encrypted_smtp_pass):
            return EmailTestResult(
                success=False,
                message="Email is not configured",
                details="Save SMTP host, user and password first",
            )

        try:
            credentials = self._credentials(system)
        except EncryptionError as e:
            logger.error(f"Failed to decrypt SMTP password: {e}")
            return EmailTestResult(
                success=False,
                message="Failed to decrypt password",
                details="Re-enter the SMTP password and save the settings",
            )

        email = render_test_email(system.system_name, system.smtp_host, system.smtp_port)
        try:
            await self._transport.send(credentials, recipient, email)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return EmailTestResult(
                success=False,
                message="SMTP authentication failed",
                details="Please check your username and password",
            )
        except smtplib.SMTPConnectError as e:
            logger.error(f"SMTP connection failed: {e}")
            return EmailTestResult(
                success=False,
                message="Failed to connect to SMTP server",
                details=f"Could not connect to {system.smtp_host}:{system.smtp_port}",
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error: {e}")
            return EmailTestResult(
                success=False, message="Failed to send test email", details=str(e)
            )

        logger.info(f"Test email sent successfully to {recipient}")
        return EmailTestResult(
            success=True, message=f"Test email sent successfully to {recipient}"
        )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight deliveries, cancelling whatever outlives ``timeout``."""
        if not self._tasks:
            return
        timeout = self._email_config.shutdown_drain_timeout if timeout is None else timeout
        tasks = list(self._tasks)
        logger.info(f"[NOTIFICATION] Draining {len(tasks)} pending notification(s)")
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(
                f"[NOTIFICATION] Cancelled {len(still_running)} notification(s) at shutdown"
            )
