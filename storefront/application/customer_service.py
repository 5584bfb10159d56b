from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from storefront.domain.models import Customer
from shared.core import get_logger
from .errors import ConflictError
from .schemas import CustomerCreate

logger = get_logger(__name__)


class CustomerService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user_id(self, user_id: str) -> Optional[Customer]:
        return self.db.query(Customer).filter(Customer.user_id == user_id).first()

    def register(self, data: CustomerCreate) -> Customer:
        """Create the profile checkout resolves ``customerId`` against. One per user id."""
        if self.get_by_user_id(data.user_id):
            raise ConflictError("Customer already exists", [f"A customer with User ID {data.user_id} already exists"])

        customer = Customer(**data.model_dump())
        self.db.add(customer)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same user
            self.db.rollback()
            raise ConflictError("Customer already exists", [f"A customer with User ID {data.user_id} already exists"])
        self.db.refresh(customer)
        logger.info("Customer registered", extra={'extra_fields': {'customer_id': customer.id}})
        return customer
