from fastapi import APIRouter, Depends

from catalog_filters.api.deps import get_registry
from catalog_filters.core.exceptions import (
    FacetOptionsUnavailableException,
    InvalidFacetException,
    OptionLoadFailure,
    UnknownFacetError,
)
from catalog_filters.schemas.session import FacetOptionsResponse
from catalog_filters.services.catalog.facet_options import FacetOptionRegistry

router = APIRouter()


@router.get("/{facet}/options", response_model=FacetOptionsResponse)
async def list_facet_options(
    facet: str,
    registry: FacetOptionRegistry = Depends(get_registry),
) -> FacetOptionsResponse:
    try:
        options = await registry.load_options(facet)
    except UnknownFacetError as exc:
        raise InvalidFacetException(str(exc)) from exc
    except OptionLoadFailure as exc:
        raise FacetOptionsUnavailableException(str(exc)) from exc
    return FacetOptionsResponse(facet=facet, options=options)


@router.get("/cache-status")
async def facet_cache_status(registry: FacetOptionRegistry = Depends(get_registry)):
    """Age of each cached option list, keyed by facet."""
    statuses = await registry.cache_status()
    return {
        facet: {"exists": status.exists, "age_seconds": status.age_seconds}
        for facet, status in statuses.items()
    }
