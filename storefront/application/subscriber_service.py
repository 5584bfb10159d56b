from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from storefront.domain.models import Subscriber
from storefront.infrastructure.email import Mailer
from shared.core import get_logger
from .stores import get_store, require_store_owner

logger = get_logger(__name__)

SORT_COLUMNS = {"email": Subscriber.email, "createdAt": Subscriber.created_at}


class SubscriberService:
    def __init__(self, db: Session, mailer: Optional[Mailer] = None):
        self.db = db
        self.mailer = mailer

    def _existing(self, store_id: str, email: str) -> Optional[Subscriber]:
        return self.db.query(Subscriber).filter(Subscriber.store_id == store_id, Subscriber.email == email).first()

    def subscribe(self, store_id: str, email: str) -> tuple[Subscriber, bool]:
        """Returns the subscriber and whether it was created by this call."""
        store = get_store(self.db, store_id)
        existing = self._existing(store_id, email)
        if existing:
            return existing, False

        subscriber = Subscriber(store_id=store_id, email=email)
        self.db.add(subscriber)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same address
            self.db.rollback()
            existing = self._existing(store_id, email)
            if existing is None:
                raise
            return existing, False
        self.db.refresh(subscriber)
        logger.info("New subscriber", extra={'extra_fields': {'store_id': store_id, 'subscriber_id': subscriber.id}})

        if self.mailer and not self.mailer.send_welcome(email, store.name):
            logger.warning(
                "Welcome email not sent",
                extra={'extra_fields': {'store_id': store_id, 'subscriber_id': subscriber.id}}
            )
        return subscriber, True

    def list(
        self,
        store_id: str,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[Subscriber], int]:
        require_store_owner(self.db, store_id, user_id)
        query = self.db.query(Subscriber).filter(Subscriber.store_id == store_id)
        if search:
            query = query.filter(Subscriber.email.ilike(f"%{search.strip()}%"))
        total = query.count()
        column = SORT_COLUMNS.get(sort_by, Subscriber.created_at)
        query = query.order_by(column.asc() if sort_order == "asc" else column.desc())
        subscribers = query.offset((page - 1) * limit).limit(limit).all()
        return subscribers, total
