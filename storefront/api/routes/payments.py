from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool
from storefront.application.payment_service import PaymentReconciler
from storefront.application.schemas import PaymentVerification
from ..deps import get_payment_reconciler

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """Gateway webhook. The signature covers the raw body, so it is read before any parsing."""
    raw_body = await request.body()
    # Database writes and SMTP are blocking; keep them off the event loop
    return await run_in_threadpool(reconciler.handle_webhook, raw_body, x_razorpay_signature)


@router.post("/verify")
def verify_payment(payload: PaymentVerification, reconciler: PaymentReconciler = Depends(get_payment_reconciler)):
    return reconciler.verify_client_confirmation(payload)
