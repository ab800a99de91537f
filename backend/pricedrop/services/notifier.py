"""Delivery of price drop notifications."""

import asyncio
import html
import smtplib
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from email.message import EmailMessage
from email.utils import make_msgid

import structlog

from pricedrop.core.config import settings
from pricedrop.core.errors import NotificationError
from pricedrop.services.pricing import format_price

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PriceDropNotice:
    """Everything a subscriber needs to hear about one drop."""

    email: str
    product_name: str
    product_url: str
    old_price: Decimal
    new_price: Decimal

    @property
    def savings(self) -> Decimal:
        return self.old_price - self.new_price

    @property
    def savings_percent(self) -> Decimal:
        if self.old_price <= 0:
            return Decimal("0")
        return (self.savings / self.old_price * 100).quantize(Decimal("0.1"))


class Notifier(ABC):
    """Base class for delivering price drop notices."""

    @abstractmethod
    async def send(self, notice: PriceDropNotice) -> str:
        """Deliver ``notice`` and return a delivery reference."""


class LogNotifier(Notifier):
    """Used when no SMTP server is configured: the email is only logged."""

    async def send(self, notice: PriceDropNotice) -> str:
        reference = f"log-{uuid.uuid4().hex[:12]}"
        logger.info(
            "notifier.email_disabled",
            to=notice.email,
            product=notice.product_name,
            old_price=str(notice.old_price),
            new_price=str(notice.new_price),
            reference=reference,
        )
        return reference


class EmailNotifier(Notifier):
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        starttls: bool = True,
        sender: str | None = None,
        timeout: float = 15.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.starttls = starttls
        self.sender = sender or settings.EMAIL_FROM
        self.timeout = timeout

    def build_message(self, notice: PriceDropNotice) -> EmailMessage:
        old_price = format_price(notice.old_price)
        new_price = format_price(notice.new_price)
        savings = format_price(notice.savings)
        subject_name = " ".join(notice.product_name.split())
        # scraped text, never trusted as markup
        name_html = html.escape(notice.product_name)
        url_attr = html.escape(notice.product_url, quote=True)

        msg = EmailMessage()
        msg["Subject"] = f"Price Drop Alert: {subject_name}"
        msg["From"] = self.sender
        msg["To"] = notice.email
        msg["Message-ID"] = make_msgid(domain="pricedrop.local")

        msg.set_content(
            f"Good news! {notice.product_name} dropped in price.\n\n"
            f"Old price: {old_price}\n"
            f"New price: {new_price}\n"
            f"You save: {savings} ({notice.savings_percent}%)\n\n"
            f"{notice.product_url}\n"
        )
        msg.add_alternative(
            f"""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #0E6F78;">Price Drop Detected!</h2>
  <p><strong>{name_html}</strong></p>
  <p style="text-decoration: line-through; color: #6B7280;">Old price: {old_price}</p>
  <p style="color: #10B981; font-size: 18px; font-weight: bold;">New price: {new_price}</p>
  <p style="color: #0E6F78; font-weight: bold;">You save: {savings} ({notice.savings_percent}%)</p>
  <a href="{url_attr}">View product</a>
</div>
""",
            subtype="html",
        )
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.starttls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

    async def send(self, notice: PriceDropNotice) -> str:
        msg = self.build_message(notice)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"Failed to email {notice.email}: {exc}") from exc

        logger.info("notifier.email_sent", to=notice.email, message_id=msg["Message-ID"])
        return msg["Message-ID"]


def build_notifier() -> Notifier:
    if not settings.SMTP_HOST:
        logger.warning("notifier.smtp_not_configured")
        return LogNotifier()
    return EmailNotifier(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        starttls=settings.SMTP_STARTTLS,
    )
