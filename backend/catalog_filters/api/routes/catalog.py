from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from catalog_filters.api.deps import get_listing
from catalog_filters.schemas.session import CatalogPageResponse
from catalog_filters.services.catalog.listing import CatalogListingService

router = APIRouter()


@router.get("/photos", response_model=CatalogPageResponse)
async def list_photos(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    fresh: bool = False,
    listing: CatalogListingService = Depends(get_listing),
) -> CatalogPageResponse:
    size = listing.page_size(limit)
    items = await listing.get_page(page, size, force_fresh=fresh)
    total_pages = await listing.get_page_count(size)
    return CatalogPageResponse(page=page, limit=size, total_pages=total_pages, items=items)


@router.get("/categories/{category}/photos", response_model=CatalogPageResponse)
async def list_category_photos(
    category: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    fresh: bool = False,
    listing: CatalogListingService = Depends(get_listing),
) -> CatalogPageResponse:
    size = listing.page_size(limit)
    try:
        items = await listing.get_category_page(category, page, size, force_fresh=fresh)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CatalogPageResponse(page=page, limit=size, items=items)


@router.get("/total")
async def total_photo_count(listing: CatalogListingService = Depends(get_listing)):
    return {"total": await listing.get_total_count()}
