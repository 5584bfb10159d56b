from typing import Optional
from fastapi import APIRouter, Depends, Query
from storefront.application.promotion_service import PromotionService
from storefront.application.schemas import PromoCodeCreate, PromoCodeRead, PromoCodeUpdate
from ..auth import get_current_user
from ..deps import get_promotion_service

router = APIRouter(prefix="/stores/{store_id}/promotions", tags=["promotions"])


@router.get("", response_model=list[PromoCodeRead])
def list_promotions(
    store_id: str,
    code: Optional[str] = Query(default=None),
    service: PromotionService = Depends(get_promotion_service),
):
    """Promotions a shopper can use right now."""
    return service.list_active(store_id, code)


@router.post("", response_model=PromoCodeRead, status_code=201)
def create_promotion(
    store_id: str,
    payload: PromoCodeCreate,
    user_id: str = Depends(get_current_user),
    service: PromotionService = Depends(get_promotion_service),
):
    return service.create(store_id, payload, user_id)


@router.get("/{promo_id}", response_model=PromoCodeRead)
def get_promotion(store_id: str, promo_id: str, service: PromotionService = Depends(get_promotion_service)):
    return service.get(store_id, promo_id)


@router.patch("/{promo_id}", response_model=PromoCodeRead)
def update_promotion(
    store_id: str,
    promo_id: str,
    payload: PromoCodeUpdate,
    user_id: str = Depends(get_current_user),
    service: PromotionService = Depends(get_promotion_service),
):
    return service.update(store_id, promo_id, payload, user_id)


@router.delete("/{promo_id}", response_model=PromoCodeRead)
def delete_promotion(
    store_id: str,
    promo_id: str,
    user_id: str = Depends(get_current_user),
    service: PromotionService = Depends(get_promotion_service),
):
    return service.delete(store_id, promo_id, user_id)
