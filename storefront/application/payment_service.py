from dataclasses import dataclass
from typing import Any, Optional
import pydantic
from sqlalchemy import or_, update
from sqlalchemy.orm import Session
from storefront.domain.models import Order, OrderStatus, PaymentSource, utcnow
from storefront.infrastructure.email import Mailer
from shared.core import get_logger
from .errors import (
    MissingParameters,
    OrderNotFound,
    SignatureInvalid,
    UpstreamConfigurationError,
    ValidationError,
    describe_validation_errors,
)
from .schemas import PaymentVerification, WebhookEvent
from .signatures import verify_payment_signature, verify_webhook_signature

logger = get_logger(__name__)

CLIENT_PAYMENT_METHOD = "Razorpay"
CAPTURED = "captured"


@dataclass
class ConfirmationResult:
    order: Order
    # True only for the call that flipped the order from unpaid to paid
    transitioned: bool


class PaymentReconciler:
    """Applies gateway payment outcomes to orders.

    Webhook deliveries and storefront confirmations both end in
    :meth:`apply_confirmation`, so the two paths converge on one paid state
    whatever order they arrive in, and the confirmation email goes out once.
    """

    def __init__(self, db: Session, webhook_secret: Optional[str], mailer: Optional[Mailer] = None, currency: str = "INR"):
        self.db = db
        self.webhook_secret = webhook_secret
        self.mailer = mailer
        self.currency = currency

    def _require_secret(self) -> str:
        if not self.webhook_secret:
            logger.error("Payment webhook secret is not configured")
            raise UpstreamConfigurationError("Payment verification is not configured")
        return self.webhook_secret

    # Webhook

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> dict[str, Any]:
        secret = self._require_secret()
        if not signature:
            raise MissingParameters("Missing webhook signature", ["X-Razorpay-Signature header is required"])
        if not verify_webhook_signature(secret, raw_body, signature):
            logger.warning(
                "Webhook signature mismatch",
                extra={'extra_fields': {'body_bytes': len(raw_body)}}
            )
            raise SignatureInvalid("Invalid webhook signature")

        try:
            event = WebhookEvent.model_validate_json(raw_body)
        except pydantic.ValidationError as e:
            raise ValidationError("Invalid webhook payload", describe_validation_errors(e.errors()))

        entity = event.payload.payment.entity
        order = self.db.query(Order).filter(Order.gateway_order_id == entity.order_id).first()
        if not order:
            logger.error(
                "Webhook for unknown gateway order",
                extra={'extra_fields': {'gateway_order_id': entity.order_id, 'payment_id': entity.id, 'event': event.event}}
            )
            raise OrderNotFound("Order not found", [f"No order found for gateway order {entity.order_id}"])

        captured = entity.status == CAPTURED
        result = self.apply_confirmation(order, PaymentSource.WEBHOOK, captured, entity.method)
        logger.info(
            "Webhook processed",
            extra={'extra_fields': {
                'order_id': order.id,
                'gateway_order_id': entity.order_id,
                'payment_id': entity.id,
                'payment_status': entity.status,
                'transitioned': result.transitioned,
            }}
        )
        return {
            "status": "success",
            "message": "Webhook processed successfully",
            "orderId": order.id,
            "paymentStatus": "Captured" if captured else "Failed",
            "alreadyApplied": captured and not result.transitioned,
        }

    # Storefront confirmation

    def verify_client_confirmation(self, data: PaymentVerification) -> dict[str, Any]:
        secret = self._require_secret()

        missing = []
        if not data.order_ref:
            missing.append("orderRef is required")
        if not data.payment_ref:
            missing.append("paymentRef is required")
        if not data.signature:
            missing.append("signature is required")
        if missing:
            raise MissingParameters("Missing required parameters", missing)

        if not verify_payment_signature(secret, data.order_ref, data.payment_ref, data.signature):
            logger.warning(
                "Payment confirmation signature mismatch",
                extra={'extra_fields': {'order_ref': data.order_ref, 'payment_ref': data.payment_ref}}
            )
            raise SignatureInvalid("Invalid payment signature")

        # Storefronts may send either the gateway order id or our own order id
        order = self.db.query(Order).filter(
            or_(Order.gateway_order_id == data.order_ref, Order.id == data.order_ref)
        ).order_by(Order.gateway_order_id.is_(None)).first()
        if not order:
            raise OrderNotFound("Order not found", [f"No order found for reference {data.order_ref}"])

        result = self.apply_confirmation(order, PaymentSource.CLIENT, True, CLIENT_PAYMENT_METHOD)
        logger.info(
            "Client payment confirmation applied",
            extra={'extra_fields': {
                'order_id': order.id,
                'order_ref': data.order_ref,
                'payment_ref': data.payment_ref,
                'transitioned': result.transitioned,
            }}
        )
        return {"status": "success", "orderId": order.id}

    # Shared

    def apply_confirmation(self, order: Order, source: PaymentSource, captured: bool, method: Optional[str]) -> ConfirmationResult:
        """Record one payment outcome on ``order``.

        A captured payment flips an unpaid order to paid and PROCESSING in a
        single conditional update; whichever caller wins that update sends the
        confirmation email. A paid order is never changed again.
        """
        if captured:
            values = {
                "is_paid": True,
                "order_status": OrderStatus.PROCESSING.value,
                "payment_source": source.value,
                "paid_at": utcnow(),
                "updated_at": utcnow(),
            }
            if method:
                values["payment_method"] = method
        else:
            if not method:
                return ConfirmationResult(order=order, transitioned=False)
            values = {"payment_method": method, "updated_at": utcnow()}

        try:
            result = self.db.execute(
                update(Order)
                .where(Order.id == order.id, Order.is_paid.is_(False))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)

        transitioned = captured and result.rowcount == 1
        if transitioned:
            self._notify_paid(order)
        return ConfirmationResult(order=order, transitioned=transitioned)

    def _notify_paid(self, order: Order):
        if not self.mailer:
            return
        recipient = order.email or (order.customer.email if order.customer else None)
        if not recipient:
            logger.warning("Paid order has no email address", extra={'extra_fields': {'order_id': order.id}})
            return
        sent = self.mailer.send_payment_confirmation(
            customer_email=recipient,
            order_number=order.id,
            amount=f"{self.currency} {order.total_amount}",
            store_name=order.store.name if order.store else "our store",
        )
        if not sent:
            logger.warning("Payment confirmation email not sent", extra={'extra_fields': {'order_id': order.id}})
