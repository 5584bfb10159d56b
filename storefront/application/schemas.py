from pydantic import BaseModel, Field, AliasChoices, StringConstraints, field_validator, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, Optional
from storefront.domain.models import ContactStatus, OrderStatus, PromoType

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Customers

class CustomerCreate(CamelModel):
    """Customer profile registered after sign-up; every field is required."""

    user_id: NonBlankStr
    first_name: NonBlankStr
    last_name: NonBlankStr
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: NonBlankStr
    street_address: NonBlankStr
    city: NonBlankStr
    state: NonBlankStr
    postal_code: NonBlankStr
    country: NonBlankStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class CustomerRead(CamelModel):
    id: str
    user_id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class CustomerCreatedResponse(CamelModel):
    message: str = "Customer data saved successfully!"
    customer: CustomerRead


# Orders

class OrderItemCreate(CamelModel):
    product_id: NonBlankStr
    variant_id: NonBlankStr
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    # Explicit line total; computed as quantity * unit_price when omitted
    total_price: Optional[Decimal] = Field(default=None, ge=0)


class OrderCreate(CamelModel):
    store_id: NonBlankStr
    # External identity reference; omitted for guest checkout
    customer_id: Optional[NonBlankStr] = None
    total_amount: Decimal = Field(gt=0)
    order_items: list[OrderItemCreate] = Field(min_length=1)
    phone: NonBlankStr
    alternate_phone: Optional[str] = None
    address: NonBlankStr
    name: Optional[str] = None
    email: Optional[str] = None
    promo_code: Optional[str] = None


class OrderItemRead(CamelModel):
    id: str
    product_id: str
    variant_id: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    product_name_snapshot: Optional[str] = None
    size_snapshot: Optional[str] = None
    color_snapshot: Optional[str] = None


class OrderRead(CamelModel):
    id: str
    store_id: str
    customer_id: Optional[str] = None
    total_amount: Decimal
    gateway_order_id: Optional[str] = None
    payment_method: Optional[str] = None
    is_paid: bool
    order_status: OrderStatus
    name: Optional[str] = None
    email: Optional[str] = None
    phone: str
    alternate_phone: Optional[str] = None
    address: str
    tracking_id: Optional[str] = None
    invoice_link: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead] = []


class GatewayOrderDetails(CamelModel):
    id: str
    amount: int
    currency: str


class OrderCreatedResponse(CamelModel):
    message: str = "Order created successfully"
    order: OrderRead
    gateway_order_details: GatewayOrderDetails


class OrderEnvelope(CamelModel):
    order: OrderRead


class Pagination(CamelModel):
    current_page: int
    page_size: int
    total_orders: int
    total_pages: int


class OrderPage(CamelModel):
    orders: list[OrderRead]
    pagination: Pagination


class OrderUpdate(CamelModel):
    order_status: Optional[OrderStatus] = None
    tracking_id: Optional[str] = None
    invoice_link: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None


class InvoiceRead(CamelModel):
    order_id: str
    invoice_id: str
    invoice_link: Optional[str] = None
    amount: Optional[int] = None


# Payments

class PaymentVerification(BaseModel):
    """Storefront confirmation after the checkout redirect.

    Callers disagree on field spelling, so each value accepts several names.
    Fields stay optional here; the reconciler reports every missing one.
    """

    order_ref: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("orderRef", "orderId", "order_id", "razorpay_order_id")
    )
    payment_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("paymentRef", "paymentId", "payment_id", "razorpayPaymentId", "razorpay_payment_id"),
    )
    signature: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("signature", "razorpaySignature", "razorpay_signature")
    )


class WebhookPaymentEntity(BaseModel):
    id: Optional[str] = None
    order_id: NonBlankStr
    status: NonBlankStr
    method: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None


class WebhookPayment(BaseModel):
    entity: WebhookPaymentEntity


class WebhookPayload(BaseModel):
    payment: WebhookPayment


class WebhookEvent(BaseModel):
    event: Optional[str] = None
    payload: WebhookPayload


# Promotions

def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class PromoCodeCreate(CamelModel):
    code: NonBlankStr
    discount: Decimal = Field(gt=0)
    type: PromoType
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    max_uses: Optional[int] = Field(default=None, gt=0)
    max_uses_per_user: Optional[int] = Field(default=None, gt=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: datetime) -> datetime:
        return _naive_utc(value)

    @model_validator(mode="after")
    def check_window(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        if self.type == PromoType.PERCENTAGE and self.discount > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class PromoCodeUpdate(CamelModel):
    """Partial update; only the fields sent are applied."""

    code: Optional[NonBlankStr] = None
    discount: Optional[Decimal] = Field(default=None, gt=0)
    type: Optional[PromoType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    max_uses: Optional[int] = Field(default=None, gt=0)
    max_uses_per_user: Optional[int] = Field(default=None, gt=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value) if value is not None else value


class PromoCodeRead(CamelModel):
    id: str
    store_id: str
    code: str
    discount: Decimal
    type: PromoType
    start_date: datetime
    end_date: datetime
    is_active: bool
    max_uses: Optional[int] = None
    max_uses_per_user: Optional[int] = None
    uses_count: int
    created_at: datetime


# Subscribers

class SubscribeRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class SubscriberRead(CamelModel):
    id: str
    email: str
    created_at: datetime


class SubscriberMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class SubscriberPage(CamelModel):
    data: list[SubscriberRead]
    meta: SubscriberMeta


SubscriberSortField = Literal["email", "createdAt"]
SortOrder = Literal["asc", "desc"]


# Contact submissions

BULK_ORDER_QUERY = "Bulk Order Inquiry"


class ContactSubmissionCreate(CamelModel):
    first_name: NonBlankStr
    last_name: NonBlankStr
    email: str = Field(pattern=EMAIL_PATTERN)
    phone_number: NonBlankStr
    message: NonBlankStr
    query_type: NonBlankStr
    customer_id: Optional[str] = None
    whatsapp_number: Optional[str] = None
    order_number: Optional[str] = None
    issue_type: Optional[str] = None
    bulk_order_details: Optional[str] = None
    source: NonBlankStr = "website"

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def drop_unrelated_bulk_details(self):
        # Bulk order details only mean something on a bulk order inquiry
        if self.query_type != BULK_ORDER_QUERY:
            self.bulk_order_details = None
        return self


class ContactSubmissionSummary(CamelModel):
    id: str
    query_type: str
    status: ContactStatus
    status_update_reason: Optional[str] = None
    created_at: datetime


class ContactSubmissionRead(ContactSubmissionSummary):
    store_id: str
    customer_id: Optional[str] = None
    first_name: str
    last_name: str
    email: str
    phone_number: str
    whatsapp_number: Optional[str] = None
    order_number: Optional[str] = None
    issue_type: Optional[str] = None
    bulk_order_details: Optional[str] = None
    message: str
    source: str


class ContactSubmissionList(CamelModel):
    submissions: list[ContactSubmissionSummary]


class ContactStatusUpdate(CamelModel):
    status: ContactStatus
    status_update_reason: Optional[str] = None
