from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Union

from catalog_filters.services.filters.predicate import Predicate


class QueryExecutionService(Protocol):
    async def execute(
        self,
        predicate: Predicate,
        *,
        count_only: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> Union[int, List[Dict[str, Any]]]:
        ...

    async def load_facet_options(self, facet: str) -> List[Dict[str, Any]]:
        ...


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...

    async def list_keys(self) -> List[str]:
        ...


class CommitListener(Protocol):
    async def on_commit(self, predicate: Predicate) -> None:
        ...
