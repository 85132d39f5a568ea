from fastapi import HTTPException, status


class FilterEngineError(Exception):
    """Base class for every error raised by the filter engine."""


class UnknownFacetError(FilterEngineError):
    def __init__(self, facet: str):
        super().__init__(f"unknown facet: {facet!r}")
        self.facet = facet


class InvalidFacetValue(FilterEngineError):
    def __init__(self, facet: str, detail: str):
        super().__init__(f"invalid value for facet {facet!r}: {detail}")
        self.facet = facet
        self.detail = detail


class InvalidRangeFacet(InvalidFacetValue):
    """Raised when a date range has its start after its end."""


class OptionLoadFailure(FilterEngineError):
    def __init__(self, facet: str, detail: str = "options unavailable"):
        super().__init__(f"could not load options for facet {facet!r}: {detail}")
        self.facet = facet


class EstimateFailure(FilterEngineError):
    def __init__(self, generation: int, detail: str):
        super().__init__(f"estimate generation {generation} failed: {detail}")
        self.generation = generation


class CacheStoreFailure(FilterEngineError):
    def __init__(self, operation: str, key: str, detail: str, *, evicted: int = 0):
        super().__init__(f"cache store {operation} failed for {key!r}: {detail}")
        self.operation = operation
        self.key = key
        # Keys already removed before the failure was raised.
        self.evicted = evicted


class SessionNotFoundError(FilterEngineError):
    def __init__(self, handle: str):
        super().__init__(f"filter session not found: {handle}")
        self.handle = handle


class SessionNotFoundException(HTTPException):
    def __init__(self, detail: str = "Filter session not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )

class InvalidFacetException(HTTPException):
    def __init__(self, detail: str = "Invalid facet"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
        )

class FacetOptionsUnavailableException(HTTPException):
    def __init__(self, detail: str = "Facet options unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail
        )
