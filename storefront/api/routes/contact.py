from fastapi import APIRouter, Depends, Query
from storefront.application.contact_service import ContactService
from storefront.application.schemas import (
    ContactStatusUpdate,
    ContactSubmissionCreate,
    ContactSubmissionList,
    ContactSubmissionRead,
    ContactSubmissionSummary,
)
from ..auth import get_current_user
from ..deps import get_contact_service

router = APIRouter(prefix="/stores/{store_id}/contact-us", tags=["contact"])


@router.post("", status_code=201)
def submit_contact_form(
    store_id: str,
    payload: ContactSubmissionCreate,
    service: ContactService = Depends(get_contact_service),
):
    submission = service.submit(store_id, payload)
    return {
        "message": "Your message has been received. We will get back to you soon!",
        "success": True,
        "submissionId": submission.id,
    }


@router.get("", response_model=ContactSubmissionList)
def list_contact_submissions(
    store_id: str,
    user_id: str = Query(alias="userId", min_length=1),
    service: ContactService = Depends(get_contact_service),
):
    """A signed-in shopper's own submissions for one store, newest first."""
    submissions = service.list_for_customer(store_id, user_id)
    return ContactSubmissionList(submissions=[ContactSubmissionSummary.model_validate(s) for s in submissions])


@router.patch("/{submission_id}", response_model=ContactSubmissionRead)
def update_contact_status(
    store_id: str,
    submission_id: str,
    payload: ContactStatusUpdate,
    user_id: str = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    return service.update_status(store_id, submission_id, payload, user_id)
