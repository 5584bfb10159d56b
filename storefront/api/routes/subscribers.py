from typing import Optional
from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from storefront.application.schemas import (
    SortOrder,
    SubscribeRequest,
    SubscriberMeta,
    SubscriberPage,
    SubscriberRead,
    SubscriberSortField,
)
from storefront.application.subscriber_service import SubscriberService
from ..auth import get_current_user
from ..deps import get_subscriber_service

router = APIRouter(prefix="/stores/{store_id}/subscribers", tags=["subscribers"])


@router.post("")
def subscribe(store_id: str, payload: SubscribeRequest, service: SubscriberService = Depends(get_subscriber_service)):
    subscriber, created = service.subscribe(store_id, payload.email)
    if not created:
        return {"message": "Email already subscribed", "alreadySubscribed": True}
    return JSONResponse(
        status_code=201,
        content={
            "message": "Successfully subscribed",
            "subscriptionId": subscriber.id,
            "isNewSubscription": True,
        },
    )


@router.get("", response_model=SubscriberPage)
def list_subscribers(
    store_id: str,
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None),
    sort_by: SubscriberSortField = Query(default="createdAt", alias="sortBy"),
    sort_order: SortOrder = Query(default="desc", alias="sortOrder"),
    user_id: str = Depends(get_current_user),
    service: SubscriberService = Depends(get_subscriber_service),
):
    subscribers, total = service.list(store_id, user_id, page, limit, search, sort_by, sort_order)
    total_pages = (total + limit - 1) // limit
    response.headers["X-Total-Count"] = str(total)
    return SubscriberPage(
        data=[SubscriberRead.model_validate(s) for s in subscribers],
        meta=SubscriberMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
    )
