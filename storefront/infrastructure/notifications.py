"""
Order email notifications

Backends:
- console: log the rendered message (development/testing)
- resend: Resend HTTP API
- smtp: plain SMTP with STARTTLS
"""
import smtplib
from email.message import EmailMessage
from html import escape

import httpx

from shared.core import get_logger
from storefront.core_settings import Settings, get_settings
from storefront.domain.errors import NotificationError
from storefront.domain.geo import format_currency
from storefront.domain.models import Order

logger = get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


def build_subject(order: Order, is_admin_copy: bool, shop_name: str) -> str:
    if is_admin_copy:
        return f"New Order #{order.order_number} - {shop_name}"
    return f"Order Confirmation #{order.order_number}"


def render_order_text(order: Order, is_admin_copy: bool, settings: Settings) -> str:
    fulfillment = "Pickup" if order.fulfillment_type == "pickup" else "Delivery"
    lines = [
        "New Order Received" if is_admin_copy else "Order Confirmation",
        f"Order #{order.order_number}",
        "",
        f"Customer: {order.customer_name}",
        f"Phone: {order.customer_phone}",
        f"Fulfillment: {fulfillment}",
    ]
    if order.delivery_address:
        lines.append(f"Delivery Address: {order.delivery_address}")
    if order.customer_notes:
        lines.append(f"Notes: {order.customer_notes}")
    lines.append("")
    for item in order.items:
        lines.append(
            f"- {item.product_name} x {item.quantity} @ {format_currency(item.price_at_purchase)}"
            f" = {format_currency(item.subtotal)}"
        )
    lines.append("")
    lines.append(f"Subtotal: {format_currency(order.subtotal)}")
    if order.delivery_fee and float(order.delivery_fee) > 0:
        lines.append(f"Delivery Fee: {format_currency(order.delivery_fee)}")
    lines.append(f"TOTAL: {format_currency(order.total)}")
    if not is_admin_copy:
        lines.append("")
        lines.append(f"Payment: Cash on {'pickup' if order.fulfillment_type == 'pickup' else 'delivery'}")
    lines.append("")
    lines.append(settings.SHOP_NAME)
    return "\n".join(lines)


def render_order_html(order: Order, is_admin_copy: bool, settings: Settings) -> str:
    rows = "".join(
        f"<tr><td>{escape(item.product_name)}</td><td>{item.quantity}</td>"
        f"<td>{format_currency(item.price_at_purchase)}</td><td>{format_currency(item.subtotal)}</td></tr>"
        for item in order.items
    )
    fee_row = ""
    if order.delivery_fee and float(order.delivery_fee) > 0:
        fee_row = (
            f"<tr><td colspan=\"3\" align=\"right\"><strong>Delivery Fee:</strong></td>"
            f"<td>{format_currency(order.delivery_fee)}</td></tr>"
        )
    address = f"<p><strong>Delivery Address:</strong> {escape(order.delivery_address)}</p>" if order.delivery_address else ""
    notes = f"<p><strong>Notes:</strong> {escape(order.customer_notes)}</p>" if order.customer_notes else ""
    closing = ""
    if not is_admin_copy:
        how = "notify you when ready for pickup" if order.fulfillment_type == "pickup" else "deliver them to your address"
        closing = (
            f"<p><strong>Thank you for your order!</strong><br>We'll prepare your items and {how}.</p>"
            f"<p>Payment: Cash on {'pickup' if order.fulfillment_type == 'pickup' else 'delivery'}</p>"
        )
    return (
        "<html><body>"
        f"<h1>{'New Order Received' if is_admin_copy else 'Order Confirmation'}</h1>"
        f"<h2>Order #{escape(order.order_number)}</h2>"
        f"<p><strong>Customer:</strong> {escape(order.customer_name)}</p>"
        f"<p><strong>Phone:</strong> {escape(order.customer_phone)}</p>"
        f"<p><strong>Fulfillment:</strong> {'Pickup' if order.fulfillment_type == 'pickup' else 'Delivery'}</p>"
        f"{address}{notes}"
        "<table><tr><th>Item</th><th>Qty</th><th>Price</th><th>Total</th></tr>"
        f"{rows}"
        f"<tr><td colspan=\"3\" align=\"right\"><strong>Subtotal:</strong></td><td>{format_currency(order.subtotal)}</td></tr>"
        f"{fee_row}"
        f"<tr><td colspan=\"3\" align=\"right\"><strong>TOTAL:</strong></td><td>{format_currency(order.total)}</td></tr>"
        "</table>"
        f"{closing}"
        f"<p>{escape(settings.SHOP_NAME)}<br>{escape(settings.SHOP_ADDRESS)}<br>{escape(settings.SHOP_PHONE)}</p>"
        "</body></html>"
    )


class EmailNotifier:
    """Sends order emails through the configured backend"""

    def __init__(self, settings: Settings = None):
        self.settings = settings or get_settings()
        self.backend = self.settings.EMAIL_BACKEND

    def send(self, order: Order, recipient: str, is_admin_copy: bool) -> None:
        """
        Send an order email.

        Raises:
            NotificationError: if the backend is unknown or delivery fails
        """
        subject = build_subject(order, is_admin_copy, self.settings.SHOP_NAME)
        if self.backend == "console":
            self._send_console(recipient, subject, render_order_text(order, is_admin_copy, self.settings))
        elif self.backend == "resend":
            self._send_resend(recipient, subject, render_order_html(order, is_admin_copy, self.settings))
        elif self.backend == "smtp":
            self._send_smtp(
                recipient,
                subject,
                render_order_text(order, is_admin_copy, self.settings),
                render_order_html(order, is_admin_copy, self.settings),
            )
        else:
            raise NotificationError(f"Unknown email backend: {self.backend}")

        logger.info(
            f"Order email sent via {self.backend}",
            extra={'extra_fields': {
                'order_number': order.order_number,
                'admin_copy': is_admin_copy,
            }}
        )

    def _send_console(self, to: str, subject: str, body: str) -> None:
        logger.info(
            f"EMAIL to={to} subject={subject}",
            extra={'extra_fields': {'to': to, 'subject': subject, 'body': body}}
        )

    def _send_resend(self, to: str, subject: str, html: str) -> None:
        if not self.settings.RESEND_API_KEY:
            raise NotificationError("RESEND_API_KEY is not configured")
        try:
            with httpx.Client(timeout=5.0) as client:
                response = client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.settings.RESEND_API_KEY}"},
                    json={"from": self.settings.EMAIL_FROM, "to": [to], "subject": subject, "html": html},
                )
        except httpx.HTTPError as e:
            raise NotificationError(f"Resend request failed: {e}") from e
        if response.status_code >= 300:
            raise NotificationError(f"Resend rejected email: status {response.status_code}")

    def _send_smtp(self, to: str, subject: str, text: str, html: str) -> None:
        if not (self.settings.SMTP_HOST and self.settings.SMTP_USER):
            raise NotificationError("SMTP is not configured")
        message = EmailMessage()
        message["From"] = self.settings.EMAIL_FROM or self.settings.SMTP_USER
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html, subtype="html")
        try:
            with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=10) as smtp:
                smtp.starttls()
                smtp.login(self.settings.SMTP_USER, self.settings.SMTP_PASS or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"SMTP delivery failed: {e}") from e
