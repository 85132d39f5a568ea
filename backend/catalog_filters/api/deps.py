from fastapi import Request

from catalog_filters.services.catalog.facet_options import FacetOptionRegistry
from catalog_filters.services.catalog.listing import CatalogListingService
from catalog_filters.services.filters.session import FilterSessionController


def get_controller(request: Request) -> FilterSessionController:
    return request.app.state.controller


def get_registry(request: Request) -> FacetOptionRegistry:
    return request.app.state.registry


def get_listing(request: Request) -> CatalogListingService:
    return request.app.state.listing
