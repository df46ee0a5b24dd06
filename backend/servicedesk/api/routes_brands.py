from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.dependencies import get_services, require_privileged, require_requester
from servicedesk.domain.brands import service as brand_service
from servicedesk.domain.brands.schemas import BrandResponse, BrandSaveRequest
from servicedesk.domain.errors import NotFoundError
from servicedesk.domain.users.identity import Requester
from servicedesk.infra.db import get_db_session
from servicedesk.services import AppServices

router = APIRouter(prefix="/v1/brands")


@router.post("", response_model=BrandResponse)
async def save_brand(
    request: BrandSaveRequest,
    response: Response,
    _requester: Requester = Depends(require_privileged),
    session: AsyncSession = Depends(get_db_session),
    services: AppServices = Depends(get_services),
) -> BrandResponse:
    brand, created = await brand_service.save_brand(session, request, audit=services.audit)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return brand_service.brand_to_response(brand)


@router.get("", response_model=list[BrandResponse])
async def list_brands(
    include_inactive: bool = Query(False, alias="includeInactive"),
    _requester: Requester = Depends(require_requester),
    session: AsyncSession = Depends(get_db_session),
) -> list[BrandResponse]:
    brands = await brand_service.list_brands(session, include_inactive=include_inactive)
    return [brand_service.brand_to_response(brand) for brand in brands]


@router.get("/{name}", response_model=BrandResponse)
async def get_brand(
    name: str,
    _requester: Requester = Depends(require_requester),
    session: AsyncSession = Depends(get_db_session),
) -> BrandResponse:
    brand = await brand_service.get_brand_by_name(session, name, active_only=False)
    if brand is None:
        raise NotFoundError(detail="Brand not found")
    return brand_service.brand_to_response(brand)
