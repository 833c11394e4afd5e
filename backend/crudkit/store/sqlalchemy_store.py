"""
crudkit Backend — SQLAlchemy Store
===================================

What:  Generic Store implementation over an async SQLAlchemy model.
How:   Each call opens its own transactional session from Database, so
       stores hold no per-request state and are safe to share.

Filtering:
    {"status": "active", "type": ["system", "news_raw"]}
        → WHERE status = 'active' AND type IN ('system', 'news_raw')

Sorting:
    ["-createdAt", "title"] → ORDER BY created_at DESC, title ASC
    Unknown fields are ignored; without a sort, newest first when the model
    has created_at.
"""

import logging
from typing import Any, List, Mapping, Type

from sqlalchemy import asc, desc, func, select
from sqlalchemy.sql import Select

from crudkit.core.query import PagingQuery, PaginationResult
from crudkit.core.text import camel_to_snake
from crudkit.database import Database
from crudkit.exceptions import NotFoundError
from crudkit.models.base import ResourceRecord
from crudkit.store.base import Store

logger = logging.getLogger(__name__)


class SqlAlchemyStore(Store):
    """Store backed by one ORM model class."""

    def __init__(self, db: Database, record_class: Type[ResourceRecord]):
        self.db = db
        self.record_class = record_class

    @property
    def name(self) -> str:
        return self.record_class.__name__

    def _where(self, stmt: Select, query: Mapping[str, Any]) -> Select:
        for column_name, value in query.items():
            column = getattr(self.record_class, column_name)
            if isinstance(value, (list, tuple, set)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return stmt

    def _order_by(self, sort: List[str]) -> list:
        columns = self.record_class.column_names()
        clauses = []
        for field in sort:
            descending = field.startswith("-")
            name = camel_to_snake(field.lstrip("-+"))
            if name not in columns:
                continue
            column = getattr(self.record_class, name)
            clauses.append(desc(column) if descending else asc(column))
        if not clauses and "created_at" in columns:
            clauses.append(desc(self.record_class.created_at))
        return clauses

    async def filter_pagination(
        self, query: Mapping[str, Any], paging: PagingQuery
    ) -> PaginationResult:
        base = self._where(select(self.record_class), query)
        count_stmt = select(func.count()).select_from(base.subquery())
        page_stmt = (
            base.order_by(*self._order_by(paging.sort))
            .offset(paging.offset)
            .limit(paging.page_size)
        )

        async with self.db.session() as session:
            total = (await session.execute(count_stmt)).scalar_one()
            records = list((await session.execute(page_stmt)).scalars().all())

        logger.debug(
            "%s page %d/%d: %d of %d",
            self.name, paging.page, paging.page_size, len(records), total,
        )
        return PaginationResult(
            data=records,
            total=total,
            page=paging.page,
            page_size=paging.page_size,
        )

    async def get_one_by_pk(self, pk: str) -> Any:
        async with self.db.session() as session:
            record = await session.get(self.record_class, pk)
        if record is None:
            raise NotFoundError(resource=self.name, resource_id=pk)
        return record

    async def insert_one(self, record: Any) -> Any:
        async with self.db.session() as session:
            session.add(record)
            await session.flush()
        logger.info("%s inserted: %s", self.name, getattr(record, "uid", None))
        return record

    async def update_one(self, record: Any) -> Any:
        async with self.db.session() as session:
            merged = await session.merge(record)
            await session.flush()
        return merged
