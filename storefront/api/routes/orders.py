from typing import Optional
from fastapi import APIRouter, Depends, Query
from storefront.application.order_service import OrderService
from storefront.application.schemas import (
    InvoiceRead,
    OrderCreate,
    OrderCreatedResponse,
    OrderEnvelope,
    OrderPage,
    OrderRead,
    OrderUpdate,
    Pagination,
)
from storefront.domain.models import OrderStatus
from ..auth import get_current_user
from ..deps import get_order_service

router = APIRouter(tags=["orders"])


@router.post("/orders", response_model=OrderCreatedResponse, status_code=201)
def create_order(payload: OrderCreate, service: OrderService = Depends(get_order_service)):
    order, gateway_details = service.checkout(payload)
    return OrderCreatedResponse(order=OrderRead.model_validate(order), gateway_order_details=gateway_details)


@router.get("/orders/{order_id}", response_model=OrderEnvelope)
def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    return OrderEnvelope(order=OrderRead.model_validate(service.get_or_404(order_id)))


@router.get("/stores/{store_id}/orders", response_model=OrderPage)
def list_store_orders(
    store_id: str,
    customer_id: Optional[str] = Query(default=None, alias="customerId"),
    status: Optional[OrderStatus] = Query(default=None),
    is_paid: Optional[bool] = Query(default=None, alias="isPaid"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100, alias="pageSize"),
    service: OrderService = Depends(get_order_service),
):
    orders, total = service.list_for_store(store_id, customer_id, status, is_paid, page, page_size)
    return OrderPage(
        orders=[OrderRead.model_validate(o) for o in orders],
        pagination=Pagination(
            current_page=page,
            page_size=page_size,
            total_orders=total,
            total_pages=(total + page_size - 1) // page_size,
        ),
    )


@router.patch("/stores/{store_id}/orders/{order_id}", response_model=OrderEnvelope)
def update_order(
    store_id: str,
    order_id: str,
    payload: OrderUpdate,
    user_id: str = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.update(store_id, order_id, payload, user_id)
    return OrderEnvelope(order=OrderRead.model_validate(order))


@router.post("/stores/{store_id}/orders/{order_id}/invoice", response_model=InvoiceRead)
def generate_invoice(
    store_id: str,
    order_id: str,
    user_id: str = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.generate_invoice(store_id, order_id, user_id)
