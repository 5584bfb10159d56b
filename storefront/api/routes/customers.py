from fastapi import APIRouter, Depends
from storefront.application.customer_service import CustomerService
from storefront.application.schemas import CustomerCreate, CustomerCreatedResponse, CustomerRead
from ..deps import get_customer_service

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=CustomerCreatedResponse, status_code=201)
def register_customer(payload: CustomerCreate, service: CustomerService = Depends(get_customer_service)):
    customer = service.register(payload)
    return CustomerCreatedResponse(customer=CustomerRead.model_validate(customer))
