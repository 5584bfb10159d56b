from decimal import Decimal
from typing import Any, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from storefront.domain.models import Order, OrderItem, OrderStatus, Product, ProductVariant, utcnow
from storefront.infrastructure.email import Mailer
from storefront.infrastructure.payment_gateway import (
    PaymentGatewayError,
    PaymentGatewayNotConfigured,
    to_minor_units,
)
from shared.core import get_logger
from .errors import NotFoundError, OrderNotFound, UpstreamConfigurationError, UpstreamError, ValidationError
from .customer_service import CustomerService
from .promotion_service import PromotionService
from .schemas import OrderCreate, OrderUpdate
from .stores import get_store, require_store_owner

logger = get_logger(__name__)

CENTS = Decimal("0.01")


def line_total(quantity: int, unit_price: Decimal, override: Optional[Decimal] = None) -> Decimal:
    """Explicit override when supplied, otherwise quantity * unit price."""
    total = override if override is not None else Decimal(quantity) * Decimal(unit_price)
    return Decimal(total).quantize(CENTS)


class OrderService:
    def __init__(self, db: Session, gateway=None, mailer: Optional[Mailer] = None, currency: str = "INR"):
        self.db = db
        self.gateway = gateway
        self.mailer = mailer
        self.currency = currency

    def get(self, order_id: str) -> Optional[Order]:
        return self.db.get(Order, order_id)

    def get_or_404(self, order_id: str) -> Order:
        order = self.get(order_id)
        if not order:
            raise OrderNotFound("Order not found", [f"No order found with ID: {order_id}"])
        return order

    def list_for_store(
        self,
        store_id: str,
        customer_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        is_paid: Optional[bool] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[Order], int]:
        get_store(self.db, store_id)
        query = self.db.query(Order).filter(Order.store_id == store_id)
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)
        if status:
            query = query.filter(Order.order_status == status.value)
        if is_paid is not None:
            query = query.filter(Order.is_paid.is_(is_paid))
        total = query.count()
        orders = (
            query.order_by(Order.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return orders, total

    # Checkout

    def checkout(self, data: OrderCreate) -> tuple[Order, dict[str, Any]]:
        """Persist the order, then open the matching gateway order."""
        order = self.create(data)
        gateway_details = self.create_gateway_order(order)
        return order, gateway_details

    def create(self, data: OrderCreate) -> Order:
        """Order intake: re-validate every reference, then write order and items atomically.

        Nothing is written unless the store, the customer and every
        product/variant pair resolve.
        """
        store = get_store(self.db, data.store_id)

        customer = None
        if data.customer_id:
            customer = CustomerService(self.db).get_by_user_id(data.customer_id)
        if data.customer_id and not customer:
            logger.error(
                "Customer not found for order",
                extra={'extra_fields': {'store_id': store.id, 'customer_user_id': data.customer_id}}
            )
            raise NotFoundError("Customer Not Found", [f"No customer found with User ID: {data.customer_id}"])

        resolved = []
        problems = []
        for item in data.order_items:
            product = self.db.query(Product).filter(
                Product.id == item.product_id,
                Product.store_id == store.id,
            ).first()
            if not product:
                problems.append(f"Product {item.product_id} not found in the specified store")
                continue
            variant = self.db.query(ProductVariant).filter(
                ProductVariant.id == item.variant_id,
                ProductVariant.product_id == product.id,
            ).first()
            if not variant:
                problems.append(f"Invalid variant {item.variant_id} for product {item.product_id}")
                continue
            resolved.append((item, product, variant))

        if problems:
            logger.error(
                "Product variant validation failed",
                extra={'extra_fields': {
                    'store_id': store.id,
                    'problems': problems,
                    'items': [{'product_id': i.product_id, 'variant_id': i.variant_id} for i in data.order_items],
                }}
            )
            raise NotFoundError("Product Variant Validation Failed", problems)

        promotions = PromotionService(self.db)
        promo = None
        if data.promo_code:
            promo = promotions.get_redeemable(store.id, data.promo_code, customer.id if customer else None)

        order = Order(
            store_id=store.id,
            customer_id=customer.id if customer else None,
            total_amount=Decimal(data.total_amount).quantize(CENTS),
            is_paid=False,
            order_status=OrderStatus.PENDING.value,
            phone=data.phone,
            alternate_phone=data.alternate_phone,
            address=data.address,
            name=data.name or (customer.full_name if customer else None),
            email=data.email or (customer.email if customer else None),
            promo_code_id=promo.id if promo else None,
        )
        for position, (item, product, variant) in enumerate(resolved):
            order.items.append(OrderItem(
                position=position,
                product_id=product.id,
                variant_id=variant.id,
                quantity=item.quantity,
                unit_price=Decimal(item.unit_price).quantize(CENTS),
                total_price=line_total(item.quantity, item.unit_price, item.total_price),
                product_name_snapshot=product.name,
                size_snapshot=variant.size.value if variant.size else None,
                color_snapshot=variant.color.name if variant.color else None,
            ))

        try:
            self.db.add(order)
            self.db.flush()
            if promo:
                promotions.redeem(promo, order.customer_id, order.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(
            "Order created",
            extra={'extra_fields': {'order_id': order.id, 'store_id': store.id, 'items': len(order.items)}}
        )
        return order

    def create_gateway_order(self, order: Order) -> dict[str, Any]:
        """Open a gateway order for ``order`` and store its reference.

        On failure the local order stays in place, unpaid and without a
        gateway reference; it is not rolled back.
        """
        amount = to_minor_units(order.total_amount)
        notes = {
            "orderId": order.id,
            "customerId": order.customer_id or "",
            "storeId": order.store_id,
            "customerName": order.name or "",
            "customerEmail": order.email or "",
            "customerPhone": order.phone or "",
        }
        try:
            remote = self.gateway.create_order(amount=amount, currency=self.currency, receipt=order.id, notes=notes)
        except PaymentGatewayNotConfigured:
            logger.error("Payment gateway credentials missing", extra={'extra_fields': {'order_id': order.id}})
            raise UpstreamConfigurationError("Payment gateway is not configured")
        except PaymentGatewayError as e:
            logger.error(
                "Gateway order creation failed",
                extra={'extra_fields': {'order_id': order.id, 'amount': amount, 'error': str(e)}}
            )
            raise UpstreamError("Payment Gateway Error", [str(e) or "Failed to create gateway order"])

        gateway_order_id = remote.get("id")
        if not gateway_order_id:
            logger.error("Gateway response had no order id", extra={'extra_fields': {'order_id': order.id}})
            raise UpstreamError("Payment Gateway Error", ["Gateway response did not include an order id"])

        order_id = order.id
        order.gateway_order_id = gateway_order_id
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.error(
                "Gateway order reference already attached to another order",
                extra={'extra_fields': {'order_id': order_id, 'gateway_order_id': gateway_order_id}}
            )
            raise UpstreamError("Payment Gateway Error", [f"Gateway order {gateway_order_id} is already in use"])
        logger.info(
            "Gateway order attached",
            extra={'extra_fields': {'order_id': order.id, 'gateway_order_id': gateway_order_id, 'amount': amount}}
        )
        return {
            "id": gateway_order_id,
            "amount": remote.get("amount", amount),
            "currency": remote.get("currency", self.currency),
        }

    # Admin

    def _get_store_order(self, store_id: str, order_id: str) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id, Order.store_id == store_id).first()
        if not order:
            raise OrderNotFound("Order not found", [f"No order {order_id} in store {store_id}"])
        return order

    def update(self, store_id: str, order_id: str, data: OrderUpdate, user_id: str) -> Order:
        """Manual status, tracking and contact updates. Never touches the paid flag."""
        store = require_store_owner(self.db, store_id, user_id)
        order = self._get_store_order(store_id, order_id)

        if data.order_status is not None:
            order.order_status = data.order_status.value
        if data.tracking_id:
            order.tracking_id = data.tracking_id
        if data.invoice_link:
            order.invoice_link = data.invoice_link
        if data.customer_name:
            order.name = data.customer_name
        if data.customer_email:
            order.email = data.customer_email
        if data.customer_phone:
            order.phone = data.customer_phone

        self.db.commit()
        self.db.refresh(order)
        logger.info(
            "Order updated",
            extra={'extra_fields': {
                'order_id': order.id,
                'store_id': store_id,
                'order_status': order.order_status,
                'tracking_id': data.tracking_id,
            }}
        )

        recipient = self._recipient(order)
        if self.mailer and recipient and (data.order_status or data.tracking_id or data.invoice_link):
            self.mailer.send_order_status_update(
                customer_email=recipient,
                order_number=order.id,
                new_status=order.order_status if data.order_status else "Updated",
                store_name=store.name,
                tracking_id=data.tracking_id,
                additional_info=f"Invoice is now available: {data.invoice_link}" if data.invoice_link else None,
            )
        return order

    def generate_invoice(self, store_id: str, order_id: str, user_id: str) -> dict[str, Any]:
        store = require_store_owner(self.db, store_id, user_id)
        order = self._get_store_order(store_id, order_id)
        if not order.is_paid:
            raise ValidationError("Order is not paid", ["Invoices can only be generated for paid orders"])

        customer = order.customer
        invoice_customer = {
            "name": order.name or (customer.full_name if customer else "N/A"),
            "email": order.email or (customer.email if customer else ""),
            "contact": order.phone or (customer.phone if customer else ""),
            "billing_address": {
                "line1": order.address,
                "city": (customer.city if customer else None) or "N/A",
                "state": (customer.state if customer else None) or "N/A",
                "country": (customer.country if customer else None) or "IN",
                "zipcode": (customer.postal_code if customer else None) or "N/A",
            },
        }
        line_items = [
            {
                "name": item.product_name_snapshot or f"Product {item.product_id}",
                "description": (
                    f"{item.product_name_snapshot or item.product_id} - Size: {item.size_snapshot or 'One Size'}"
                    f" | Color: {item.color_snapshot or 'N/A'}"
                ),
                "amount": to_minor_units(item.unit_price),
                "currency": self.currency,
                "quantity": item.quantity,
            }
            for item in order.items
        ]
        notes = {
            "order_id": order.id,
            "store_name": store.name,
            "payment_method": order.payment_method or "N/A",
            "order_date": order.created_at.isoformat(),
        }
        try:
            invoice = self.gateway.create_invoice(
                customer=invoice_customer,
                line_items=line_items,
                description=f"Order #{order.id} Invoice",
                notes=notes,
                currency=self.currency,
            )
        except PaymentGatewayNotConfigured:
            raise UpstreamConfigurationError("Payment gateway is not configured")
        except PaymentGatewayError as e:
            logger.error(
                "Invoice generation failed",
                extra={'extra_fields': {'order_id': order.id, 'error': str(e)}}
            )
            raise UpstreamError("Invoice Generation Failed", [str(e)])

        invoice_id = invoice.get("id")
        if not invoice_id:
            logger.error("Gateway response had no invoice id", extra={'extra_fields': {'order_id': order.id}})
            raise UpstreamError("Invoice Generation Failed", ["Gateway response did not include an invoice id"])

        order.gateway_invoice_id = invoice_id
        order.invoice_link = invoice.get("short_url")
        order.invoice_generated_at = utcnow()
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "Invoice generated",
            extra={'extra_fields': {'order_id': order.id, 'invoice_id': order.gateway_invoice_id}}
        )

        recipient = self._recipient(order)
        if self.mailer and recipient and order.invoice_link:
            self.mailer.send_order_status_update(
                customer_email=recipient,
                order_number=order.id,
                new_status=order.order_status,
                store_name=store.name,
                additional_info=f"Invoice is now available: {order.invoice_link}",
            )
        return {
            "order_id": order.id,
            "invoice_id": order.gateway_invoice_id,
            "invoice_link": order.invoice_link,
            "amount": invoice.get("amount"),
        }

    @staticmethod
    def _recipient(order: Order) -> Optional[str]:
        if order.email:
            return order.email
        return order.customer.email if order.customer else None
