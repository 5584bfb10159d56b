from typing import Iterator
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from storefront.core_settings import Settings
from storefront.application.contact_service import ContactService
from storefront.application.customer_service import CustomerService
from storefront.application.order_service import OrderService
from storefront.application.payment_service import PaymentReconciler
from storefront.application.promotion_service import PromotionService
from storefront.application.subscriber_service import SubscriberService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Iterator[Session]:
    yield from request.app.state.database.session()


def get_order_service(request: Request, db: Session = Depends(get_db)) -> OrderService:
    state = request.app.state
    return OrderService(db, gateway=state.gateway, mailer=state.mailer, currency=state.settings.PAYMENT_CURRENCY)


def get_payment_reconciler(request: Request, db: Session = Depends(get_db)) -> PaymentReconciler:
    state = request.app.state
    return PaymentReconciler(
        db,
        webhook_secret=state.settings.RAZORPAY_WEBHOOK_SECRET,
        mailer=state.mailer,
        currency=state.settings.PAYMENT_CURRENCY,
    )


def get_promotion_service(db: Session = Depends(get_db)) -> PromotionService:
    return PromotionService(db)


def get_subscriber_service(request: Request, db: Session = Depends(get_db)) -> SubscriberService:
    return SubscriberService(db, mailer=request.app.state.mailer)


def get_customer_service(db: Session = Depends(get_db)) -> CustomerService:
    return CustomerService(db)


def get_contact_service(request: Request, db: Session = Depends(get_db)) -> ContactService:
    state = request.app.state
    return ContactService(db, mailer=state.mailer, admin_email=state.settings.ADMIN_NOTIFICATION_EMAIL)
