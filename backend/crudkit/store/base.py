"""
crudkit Backend — Store Interface
==================================

What:  The contract ResourceController relies on, and the registry that
       maps store names ("User", "Notification") to implementations.
Why:   Controllers never touch sessions or SQL; tests swap in AsyncMock
       stores through the same registry.
"""

import abc
import logging
from typing import Any, Dict, Iterator, Mapping, Optional, Type

from crudkit.core.query import PagingQuery, PaginationResult
from crudkit.exceptions import InvalidConfiguration
from crudkit.models.base import ResourceRecord

logger = logging.getLogger(__name__)


class Store(abc.ABC):
    """
    Data access for one resource type.

    record_class must implement the ResourceRecord capabilities
    (to_response, to_query, apply).
    """

    record_class: Type[ResourceRecord]

    @abc.abstractmethod
    async def filter_pagination(
        self, query: Mapping[str, Any], paging: PagingQuery
    ) -> PaginationResult:
        """One page of records matching `query` (column → value or list of values)."""

    @abc.abstractmethod
    async def get_one_by_pk(self, pk: str) -> Any:
        """Record by primary key. Raises NotFoundError on a miss."""

    @abc.abstractmethod
    async def insert_one(self, record: Any) -> Any:
        """Persist a new record and return it."""

    @abc.abstractmethod
    async def update_one(self, record: Any) -> Any:
        """Persist changes to an existing record and return it."""

    def create_model(self, values: Mapping[str, Any]) -> Any:
        """Build an unsaved record from column values (unknown keys dropped)."""
        record = self.record_class()
        record.apply(values)
        return record


class DataStore:
    """
    Registry of stores, constructed once at startup.

    Usage:
        data_store = DataStore({"User": UserStore(db), "Notification": NotificationStore(db)})
        data_store.get_store("Notification")
    """

    def __init__(self, stores: Optional[Dict[str, Store]] = None):
        self._stores: Dict[str, Store] = dict(stores or {})

    def register(self, name: str, store: Store) -> None:
        self._stores[name] = store
        logger.debug("Store registered: %s", name)

    def get_store(self, name: str) -> Store:
        try:
            return self._stores[name]
        except KeyError:
            raise InvalidConfiguration(f"No store registered under '{name}'")

    def __contains__(self, name: str) -> bool:
        return name in self._stores

    def __iter__(self) -> Iterator[str]:
        return iter(self._stores)
