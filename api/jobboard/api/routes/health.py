from fastapi import APIRouter, Depends

from jobboard.schemas.listings import StoreStatusOut
from jobboard.services.listings import get_listing_service

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz/store", response_model=StoreStatusOut, response_model_exclude_none=True)
async def store_health(service=Depends(get_listing_service)) -> StoreStatusOut:
    return StoreStatusOut(**await service.store_status())
