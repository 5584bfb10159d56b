from datetime import datetime
from typing import Optional
from sqlalchemy import func, update
from sqlalchemy.orm import Session
from storefront.domain.models import Order, PromoCode, PromoRedemption, PromoType, utcnow
from shared.core import get_logger
from .errors import NotFoundError, ValidationError
from .schemas import PromoCodeCreate, PromoCodeUpdate
from .stores import get_store, require_store_owner

logger = get_logger(__name__)

# Columns a partial update may not set to null
REQUIRED_FIELDS = ("code", "discount", "type", "start_date", "end_date", "is_active")


class PromotionService:
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _values(data: PromoCodeCreate) -> dict:
        values = data.model_dump()
        values["type"] = data.type.value
        return values

    def _find_by_code(self, store_id: str, code: str) -> Optional[PromoCode]:
        return self.db.query(PromoCode).filter(
            PromoCode.store_id == store_id,
            func.lower(PromoCode.code) == code.strip().lower(),
        ).first()

    def _ensure_code_free(self, store_id: str, code: str, exclude_id: Optional[str] = None):
        existing = self._find_by_code(store_id, code)
        if existing and existing.id != exclude_id:
            raise ValidationError("Promo code already exists", [f"Code {code} is already used in this store"])

    def get(self, store_id: str, promo_id: str) -> PromoCode:
        promo = self.db.query(PromoCode).filter(PromoCode.id == promo_id, PromoCode.store_id == store_id).first()
        if not promo:
            raise NotFoundError("Promo code not found", [f"No promo code {promo_id} in store {store_id}"])
        return promo

    def list_active(self, store_id: str, code: Optional[str] = None, now: Optional[datetime] = None) -> list[PromoCode]:
        """Promotions usable right now: active and inside their date window."""
        get_store(self.db, store_id)
        now = now or utcnow()
        query = self.db.query(PromoCode).filter(
            PromoCode.store_id == store_id,
            PromoCode.is_active.is_(True),
            PromoCode.start_date <= now,
            PromoCode.end_date >= now,
        )
        if code:
            query = query.filter(func.lower(PromoCode.code) == code.strip().lower())
        return query.order_by(PromoCode.created_at.desc()).all()

    def create(self, store_id: str, data: PromoCodeCreate, user_id: str) -> PromoCode:
        require_store_owner(self.db, store_id, user_id)
        self._ensure_code_free(store_id, data.code)
        promo = PromoCode(store_id=store_id, uses_count=0, **self._values(data))
        self.db.add(promo)
        self.db.commit()
        self.db.refresh(promo)
        logger.info("Promo code created", extra={'extra_fields': {'store_id': store_id, 'promo_id': promo.id}})
        return promo

    def update(self, store_id: str, promo_id: str, data: PromoCodeUpdate, user_id: str) -> PromoCode:
        require_store_owner(self.db, store_id, user_id)
        promo = self.get(store_id, promo_id)
        changes = data.model_dump(exclude_unset=True)

        cleared = sorted(key for key in REQUIRED_FIELDS if key in changes and changes[key] is None)
        if cleared:
            raise ValidationError("Invalid promo code update", [f"{key} cannot be null" for key in cleared])
        if "code" in changes:
            self._ensure_code_free(store_id, changes["code"], exclude_id=promo.id)
        if changes.get("type") is not None:
            changes["type"] = changes["type"].value

        start = changes.get("start_date", promo.start_date)
        end = changes.get("end_date", promo.end_date)
        problems = []
        if end < start:
            problems.append("endDate must not be before startDate")
        if changes.get("type", promo.type) == PromoType.PERCENTAGE.value and changes.get("discount", promo.discount) > 100:
            problems.append("Percentage discount cannot exceed 100")
        if problems:
            raise ValidationError("Invalid promo code update", problems)

        for key, value in changes.items():
            setattr(promo, key, value)
        self.db.commit()
        self.db.refresh(promo)
        logger.info(
            "Promo code updated",
            extra={'extra_fields': {'store_id': store_id, 'promo_id': promo.id, 'fields': sorted(changes)}}
        )
        return promo

    def delete(self, store_id: str, promo_id: str, user_id: str) -> PromoCode:
        """Remove a promo code that was never used. Used codes are kept for order history."""
        require_store_owner(self.db, store_id, user_id)
        promo = self.get(store_id, promo_id)
        redemptions = self.db.query(PromoRedemption).filter(PromoRedemption.promo_code_id == promo.id).count()
        orders = self.db.query(Order).filter(Order.promo_code_id == promo.id).count()
        if redemptions or orders:
            raise ValidationError(
                "Promo code has been used",
                [f"Promo code {promo.code} is referenced by {max(redemptions, orders)} order(s); deactivate it instead"],
            )
        self.db.delete(promo)
        self.db.commit()
        logger.info("Promo code deleted", extra={'extra_fields': {'store_id': store_id, 'promo_id': promo.id}})
        return promo

    def get_redeemable(self, store_id: str, code: str, customer_id: Optional[str], now: Optional[datetime] = None) -> PromoCode:
        """Look up a code and check every rule that allows it to be used."""
        now = now or utcnow()
        promo = self._find_by_code(store_id, code)
        if not promo:
            raise ValidationError("Invalid promo code", [f"Promo code {code} does not exist"])
        if not promo.is_live(now):
            raise ValidationError("Invalid promo code", [f"Promo code {code} is not active"])
        if promo.max_uses is not None and promo.uses_count >= promo.max_uses:
            raise ValidationError("Invalid promo code", [f"Promo code {code} has reached its usage limit"])
        if promo.max_uses_per_user is not None and customer_id:
            used = self.db.query(PromoRedemption).filter(
                PromoRedemption.promo_code_id == promo.id,
                PromoRedemption.customer_id == customer_id,
            ).count()
            if used >= promo.max_uses_per_user:
                raise ValidationError("Invalid promo code", [f"Promo code {code} has already been used the maximum number of times"])
        return promo

    def redeem(self, promo: PromoCode, customer_id: Optional[str], order_id: str) -> PromoRedemption:
        """Count one use of ``promo``. Runs inside the caller's transaction; does not commit."""
        stmt = update(PromoCode).where(PromoCode.id == promo.id)
        if promo.max_uses is not None:
            # uses_count must stay <= max_uses under concurrent checkouts
            stmt = stmt.where(PromoCode.uses_count < PromoCode.max_uses)
        result = self.db.execute(
            stmt.values(uses_count=PromoCode.uses_count + 1).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ValidationError("Invalid promo code", [f"Promo code {promo.code} has reached its usage limit"])
        redemption = PromoRedemption(promo_code_id=promo.id, customer_id=customer_id, order_id=order_id)
        self.db.add(redemption)
        return redemption
