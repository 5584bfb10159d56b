from typing import Optional
from sqlalchemy.orm import Session
from storefront.domain.models import ContactStatus, ContactSubmission
from storefront.infrastructure.email import Mailer
from shared.core import get_logger
from .errors import NotFoundError
from .schemas import ContactStatusUpdate, ContactSubmissionCreate
from .stores import get_store, require_store_owner

logger = get_logger(__name__)


class ContactService:
    def __init__(self, db: Session, mailer: Optional[Mailer] = None, admin_email: str = ""):
        self.db = db
        self.mailer = mailer
        self.admin_email = admin_email

    def submit(self, store_id: str, data: ContactSubmissionCreate) -> ContactSubmission:
        """Store a contact form submission, then notify support and the submitter.

        The submission is saved before any mail goes out. A failed send marks
        it EMAIL_FAILED so support can follow up by hand.
        """
        store = get_store(self.db, store_id)
        submission = ContactSubmission(store_id=store.id, status=ContactStatus.PENDING.value, **data.model_dump())
        self.db.add(submission)
        self.db.commit()
        self.db.refresh(submission)
        logger.info(
            "Contact submission received",
            extra={'extra_fields': {'store_id': store.id, 'submission_id': submission.id, 'query_type': submission.query_type}}
        )

        if not self.mailer:
            return submission

        failed = []
        if self.admin_email and not self.mailer.send_contact_notification(self.admin_email, submission, store.name):
            failed.append("support notification")
        if not self.mailer.send_contact_confirmation(submission, store.name):
            failed.append("customer confirmation")
        if failed:
            submission.status = ContactStatus.EMAIL_FAILED.value
            submission.status_update_reason = f"Email notification failed: {', '.join(failed)}"
            self.db.commit()
            logger.warning(
                "Contact submission emails not sent",
                extra={'extra_fields': {'store_id': store.id, 'submission_id': submission.id, 'failed': failed}}
            )
        return submission

    def list_for_customer(self, store_id: str, customer_id: str) -> list[ContactSubmission]:
        get_store(self.db, store_id)
        return (
            self.db.query(ContactSubmission)
            .filter(ContactSubmission.store_id == store_id, ContactSubmission.customer_id == customer_id)
            .order_by(ContactSubmission.created_at.desc())
            .all()
        )

    def update_status(
        self, store_id: str, submission_id: str, data: ContactStatusUpdate, user_id: str
    ) -> ContactSubmission:
        store = require_store_owner(self.db, store_id, user_id)
        submission = self.db.query(ContactSubmission).filter(
            ContactSubmission.id == submission_id,
            ContactSubmission.store_id == store_id,
        ).first()
        if not submission:
            raise NotFoundError("Contact submission not found", [f"No submission {submission_id} in store {store_id}"])

        submission.status = data.status.value
        submission.status_update_reason = data.status_update_reason
        self.db.commit()
        self.db.refresh(submission)
        logger.info(
            "Contact submission status updated",
            extra={'extra_fields': {'store_id': store_id, 'submission_id': submission.id, 'status': submission.status}}
        )

        if self.mailer and not self.mailer.send_contact_status_update(submission, submission.status, store.name):
            logger.warning(
                "Contact status email not sent",
                extra={'extra_fields': {'store_id': store_id, 'submission_id': submission.id}}
            )
        return submission
