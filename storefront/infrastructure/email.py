import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr
from html import escape
from typing import Optional

from shared.core import get_logger

logger = get_logger(__name__)

CONTACT_STATUS_DESCRIPTIONS = {
    "PENDING": "Your inquiry has been received and our team is reviewing the details.",
    "IN_PROGRESS": "We are actively working on your inquiry.",
    "RESOLVED": "Your inquiry has been resolved. Thank you for your patience.",
    "CLOSED": "This inquiry has been closed. Reach out again if you have further questions.",
    "ESCALATED": "Your inquiry has been escalated to our senior support team.",
}


class Mailer:
    """Outbound customer email over SMTP.

    Every send returns a bool and never raises: a failed notification must
    not fail the order or payment write that triggered it.
    """

    def __init__(
        self,
        host: str,
        port: int = 465,
        username: str = "",
        password: str = "",
        use_ssl: bool = True,
        sender: str = "customercare@example.com",
        sender_name: str = "Storefront",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.sender = sender
        self.sender_name = sender_name
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def send(self, to_email: str, subject: str, html: str, from_name: Optional[str] = None) -> bool:
        if not to_email:
            logger.error("No recipient provided for email", extra={'extra_fields': {'subject': subject}})
            return False
        if not self.enabled:
            logger.info(
                "SMTP not configured; email skipped",
                extra={'extra_fields': {'to': to_email, 'subject': subject}}
            )
            return False

        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((from_name or self.sender_name, self.sender))
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(html, "html"))

        try:
            smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
            with smtp_cls(self.host, self.port, timeout=self.timeout) as smtp:
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.sendmail(self.sender, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                f"Error sending email: {e}",
                extra={'extra_fields': {'to': to_email, 'subject': subject}}
            )
            return False

        logger.info("Email sent", extra={'extra_fields': {'to': to_email, 'subject': subject}})
        return True

    def send_order_status_update(
        self,
        customer_email: str,
        order_number: str,
        new_status: str,
        store_name: str,
        tracking_id: Optional[str] = None,
        additional_info: Optional[str] = None,
    ) -> bool:
        extra = ""
        if tracking_id:
            extra += f"<p>Tracking ID: <strong>{escape(tracking_id)}</strong></p>"
        if additional_info:
            extra += (
                '<div style="background-color: #f4f4f4; padding: 10px; border-radius: 5px; margin-top: 15px;">'
                f"<p><strong>Additional Information:</strong> {escape(additional_info)}</p></div>"
            )
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            "<h2>Order Status Update</h2>"
            f"<p>Your order <strong>#{escape(order_number)}</strong> status has been updated to "
            f"<strong>{escape(new_status)}</strong>.</p>{extra}"
            f"<p>Thank you for shopping with {escape(store_name)}!</p></div>"
        )
        return self.send(customer_email, f"Order {order_number} Status Update", html, from_name=store_name)

    def send_payment_confirmation(self, customer_email: str, order_number: str, amount: str, store_name: str) -> bool:
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            "<h2>Payment received</h2>"
            f"<p>We have received your payment of <strong>{escape(amount)}</strong> for order "
            f"<strong>#{escape(order_number)}</strong>. We are now processing it.</p>"
            f"<p>Thank you for shopping with {escape(store_name)}!</p></div>"
        )
        return self.send(customer_email, f"Payment received for order {order_number}", html, from_name=store_name)

    def send_welcome(self, email: str, store_name: str) -> bool:
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            f"<h1>Welcome to the {escape(store_name)} family!</h1>"
            "<p>Thanks for subscribing. Expect news, offers and the occasional tip in your inbox.</p>"
            '<p style="font-size: 12px; color: #6B7280;">If you didn\'t subscribe, please ignore this email.</p>'
            "</div>"
        )
        return self.send(email, f"Welcome to {store_name}!", html, from_name=store_name)

    # Contact form

    @staticmethod
    def _contact_details(submission) -> str:
        rows = [
            ("Query Type", submission.query_type),
            ("Name", submission.full_name),
            ("Email", submission.email),
            ("Phone", submission.phone_number),
            ("WhatsApp", submission.whatsapp_number),
            ("Order Number", submission.order_number),
            ("Issue Type", submission.issue_type),
        ]
        html = "".join(f"<p><strong>{label}:</strong> {escape(value)}</p>" for label, value in rows if value)
        if submission.bulk_order_details:
            html += (
                "<h3>Bulk Order Details</h3>"
                '<pre style="background-color: #f4f4f4; padding: 10px; border-radius: 5px;">'
                f"{escape(submission.bulk_order_details)}</pre>"
            )
        return html

    def send_contact_notification(self, to_email: str, submission, store_name: str) -> bool:
        """Tell the support inbox about a new contact form submission."""
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            "<h2>New Contact Form Submission</h2>"
            f"<p><strong>Store:</strong> {escape(store_name)}</p>"
            f"{self._contact_details(submission)}"
            f"<h3>Message</h3><p>{escape(submission.message)}</p>"
            f"<p><em>Source: {escape(submission.source)}</em></p></div>"
        )
        return self.send(
            to_email, f"New Contact Form Submission - {submission.query_type}", html, from_name=f"{store_name} Support"
        )

    def send_contact_confirmation(self, submission, store_name: str) -> bool:
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            f"<h2>Hello {escape(submission.first_name)}!</h2>"
            f"<p>Thank you for reaching out to {escape(store_name)}. We've received your inquiry.</p>"
            f"{self._contact_details(submission)}"
            f'<h3>Your Message</h3><p><em>"{escape(submission.message)}"</em></p>'
            "<p>Our support team aims to respond within <strong>24-48 hours</strong>.</p></div>"
        )
        return self.send(
            submission.email, f"Your Inquiry Received - {submission.query_type}", html, from_name=f"{store_name} Support"
        )

    def send_contact_status_update(self, submission, new_status: str, store_name: str) -> bool:
        description = CONTACT_STATUS_DESCRIPTIONS.get(
            new_status, f"Your inquiry status has been updated to {new_status}."
        )
        reason = ""
        if submission.status_update_reason:
            reason = f"<p><strong>Note:</strong> {escape(submission.status_update_reason)}</p>"
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            "<h2>Inquiry Status Update</h2>"
            f"<p>Hello {escape(submission.full_name or 'Valued Customer')},</p>"
            f"<p><strong>Inquiry ID:</strong> {escape(submission.id)}<br>"
            f"<strong>Current Status:</strong> {escape(new_status)}</p>"
            f"<p>{escape(description)}</p>{reason}"
            "<p>If you have any questions, reply to this email.</p></div>"
        )
        return self.send(
            submission.email, "Status Update for Your Inquiry", html, from_name=f"{store_name} Support"
        )
