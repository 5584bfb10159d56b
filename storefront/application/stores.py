from sqlalchemy.orm import Session
from storefront.domain.models import Store
from .errors import AuthorizationError, NotFoundError


def get_store(db: Session, store_id: str) -> Store:
    store = db.get(Store, store_id)
    if not store:
        raise NotFoundError("Store Not Found", [f"No store found with ID: {store_id}"])
    return store


def require_store_owner(db: Session, store_id: str, user_id: str) -> Store:
    """Return the store if ``user_id`` owns it.

    A missing store and someone else's store both answer 403 so the
    response does not reveal which store ids exist.
    """
    store = db.query(Store).filter(Store.id == store_id, Store.user_id == user_id).first()
    if not store:
        raise AuthorizationError("Unauthorized", ["Store does not belong to the current user"])
    return store
