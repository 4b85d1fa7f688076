"""
Email Delivery for customer notifications.

Fire-and-forget: every send returns True/False and logs failures. Nothing
here raises into the order job, so a mail outage never undoes an order.
"""

from abc import ABC, abstractmethod
from datetime import date
from html import escape

import sendgrid
import structlog
from sendgrid.helpers.mail import Mail, ReplyTo

from integrations.address_verification import Address

logger = structlog.get_logger()


class Notifier(ABC):
    """Notification sink used by the scheduling jobs."""

    @abstractmethod
    async def order_created(self, user_email: str, user_name: str, order) -> bool: ...

    @abstractmethod
    async def missing_return_address(
        self,
        user_email: str,
        user_name: str,
        recipient_name: str,
        occasion_type: str,
        occasion_date: date,
    ) -> bool: ...

    @abstractmethod
    async def urgent_address_issue(
        self,
        user_email: str,
        user_name: str,
        recipient_name: str,
        occasion_type: str,
        occasion_date: date,
        days_until: int,
        address: Address,
    ) -> bool: ...

    @abstractmethod
    async def address_corrected(
        self,
        user_email: str,
        user_name: str,
        recipient_name: str,
        original_address: Address,
        corrected_address: Address,
    ) -> bool: ...


def _address_html(address: Address) -> str:
    return "<br>".join(escape(line) for line in address.format().splitlines())


def _layout(title: str, body: str, cta_label: str = "", cta_href: str = "") -> str:
    cta = ""
    if cta_href:
        cta = f"""
        <a href="{escape(cta_href)}"
           style="display: inline-block; background: #4f46e5; color: white;
                  padding: 10px 20px; border-radius: 8px; text-decoration: none;
                  margin-top: 16px; font-weight: 500;">
          {escape(cta_label)} &rarr;
        </a>"""
    return f"""
    <div style="font-family: Inter, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="background: #1e3a5f; color: white; padding: 24px; border-radius: 12px 12px 0 0;">
        <h1 style="margin: 0; font-size: 20px;">{escape(title)}</h1>
      </div>
      <div style="background: #f8fafc; padding: 24px; border: 1px solid #e2e8f0;">
        {body}
        {cta}
      </div>
      <div style="text-align: center; padding: 16px; color: #94a3b8; font-size: 12px;">
        Avoid the Rain &middot; Cards that arrive on time
      </div>
    </div>
    """


class EmailNotifier(Notifier):
    """SendGrid-backed notifier."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        base_url: str = "http://localhost:3000",
        reply_to: str = "",
        client=None,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.base_url = base_url.rstrip("/")
        self.reply_to = reply_to
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "EmailNotifier":
        return cls(
            api_key=settings.sendgrid_api_key,
            from_email=settings.email_from,
            base_url=settings.base_url,
            reply_to=settings.email_reply_to,
        )

    def _sendgrid(self):
        if self._client is None:
            self._client = sendgrid.SendGridAPIClient(api_key=self.api_key)
        return self._client

    async def send(self, to_email: str, subject: str, html_content: str) -> bool:
        if not self.api_key and self._client is None:
            logger.warning("email.not_configured", to=to_email, subject=subject)
            return False
        try:
            email = Mail(
                from_email=self.from_email,
                to_emails=to_email,
                subject=subject,
                html_content=html_content,
            )
            if self.reply_to:
                email.reply_to = ReplyTo(self.reply_to)
            response = self._sendgrid().send(email)
            sent = response.status_code in (200, 201, 202)
            if sent:
                logger.info("email.sent", to=to_email, subject=subject)
            else:
                logger.warning("email.rejected", to=to_email, status_code=response.status_code)
            return sent
        except Exception as exc:
            logger.error("email.send_failed", to=to_email, subject=subject, error=str(exc))
            return False

    async def order_created(self, user_email: str, user_name: str, order) -> bool:
        subject = f"Your {order.occasion_type} card for {order.recipient_first_name} is being prepared!"
        body = f"""
        <p style="color: #334155; line-height: 1.6;">Hi {escape(user_name)},</p>
        <p style="color: #334155; line-height: 1.6;">
          We're preparing a {escape(order.occasion_type)} card for
          <strong>{escape(order.recipient_name)}</strong>. It will arrive in time for
          {order.occasion_date.strftime("%B %d")}.
        </p>
        """
        html = _layout("Your card is on its way", body, "View orders", f"{self.base_url}/dashboard/orders")
        return await self.send(user_email, subject, html)

    async def missing_return_address(
        self,
        user_email: str,
        user_name: str,
        recipient_name: str,
        occasion_type: str,
        occasion_date: date,
    ) -> bool:
        subject = "Action Required: Add your return address"
        body = f"""
        <p style="color: #334155; line-height: 1.6;">Hi {escape(user_name)},</p>
        <p style="color: #334155; line-height: 1.6;">
          {escape(recipient_name)}'s {escape(occasion_type)} card ({occasion_date.strftime("%B %d")})
          is ready to go out, but your account has no default return address.
          Add one so we can mail it.
        </p>
        """
        html = _layout("We need your return address", body, "Add address", f"{self.base_url}/dashboard/general")
        return await self.send(user_email, subject, html)

    async def urgent_address_issue(
        self,
        user_email: str,
        user_name: str,
        recipient_name: str,
        occasion_type: str,
        occasion_date: date,
        days_until: int,
        address: Address,
    ) -> bool:
        subject = "Action Required: Verify Address for Upcoming Card"
        body = f"""
        <div style="background: #fef2f2; border-left: 4px solid #dc2626;
                    padding: 16px; border-radius: 0 8px 8px 0; margin-bottom: 16px;">
          <p style="margin: 0; font-weight: 600; color: #1e293b;">
            {escape(recipient_name)}'s {escape(occasion_type)} is in {days_until} days
          </p>
        </div>
        <p style="color: #334155; line-height: 1.6;">Hi {escape(user_name)},</p>
        <p style="color: #334155; line-height: 1.6;">
          USPS could not confirm this address, so the card for {occasion_date.strftime("%B %d")}
          is on hold:
        </p>
        <p style="color: #64748b;">{_address_html(address)}</p>
        """
        html = _layout(
            "Address issue", body, "Fix address", f"{self.base_url}/dashboard/friendsandfamily"
        )
        return await self.send(user_email, subject, html)

    async def address_corrected(
        self,
        user_email: str,
        user_name: str,
        recipient_name: str,
        original_address: Address,
        corrected_address: Address,
    ) -> bool:
        subject = f"Address Updated for {recipient_name}"
        body = f"""
        <p style="color: #334155; line-height: 1.6;">Hi {escape(user_name)},</p>
        <p style="color: #334155; line-height: 1.6;">
          We standardized {escape(recipient_name)}'s mailing address to match USPS records.
        </p>
        <p style="color: #64748b;"><strong>Before:</strong><br>{_address_html(original_address)}</p>
        <p style="color: #64748b;"><strong>Now:</strong><br>{_address_html(corrected_address)}</p>
        """
        html = _layout(
            "Address updated", body, "Review recipient", f"{self.base_url}/dashboard/friendsandfamily"
        )
        return await self.send(user_email, subject, html)
