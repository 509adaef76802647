"""
SQL Record Store

RecordStore over a SQLAlchemy model with a string primary key `id`. Pages
are ordered by id; patches are single-row UPDATEs, so re-applying the same
patch leaves the row unchanged.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from nutribatch.core.database import get_session_factory
from nutribatch.core.exceptions import RecordStoreError
from nutribatch.core.utils import new_record_id
from nutribatch.engine.records import DELETE_FIELD, TargetRecord

logger = logging.getLogger(__name__)


class SqlRecordStore:
    def __init__(self, model, session_factory: Optional[async_sessionmaker] = None):
        self.model = model
        self._session_factory = session_factory
        self._columns = {column.name for column in model.__table__.columns}

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    def _to_record(self, row) -> TargetRecord:
        data = {name: getattr(row, name) for name in self._columns}
        return TargetRecord(key=row.id, data=data)

    def _to_values(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - self._columns
        if unknown:
            raise RecordStoreError(
                f"Unknown {self.table_name} fields: {', '.join(sorted(unknown))}",
                key=key,
            )
        # Columns cannot be removed; a deleted field becomes NULL
        return {
            name: (None if value is DELETE_FIELD else value)
            for name, value in fields.items()
            if name != "id"
        }

    async def get_page(self, after_key: Optional[str], page_size: int) -> List[TargetRecord]:
        query = select(self.model).order_by(self.model.id).limit(page_size)
        if after_key is not None:
            query = query.where(self.model.id > after_key)

        try:
            async with self.session_factory() as db:
                result = await db.execute(query)
                return [self._to_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {self.table_name} page after {after_key}: {e}")
            raise RecordStoreError(f"Failed to read {self.table_name} page", key=after_key) from e

    async def get(self, key: str) -> Optional[TargetRecord]:
        try:
            async with self.session_factory() as db:
                row = await db.get(self.model, key)
                return self._to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {self.table_name} {key}: {e}")
            raise RecordStoreError(f"Failed to read {self.table_name} record", key=key) from e

    async def patch(self, key: str, fields: Dict[str, Any]) -> None:
        values = self._to_values(key, fields)
        if not values:
            return

        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    update(self.model).where(self.model.id == key).values(**values)
                )
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to patch {self.table_name} {key}: {e}")
            raise RecordStoreError(f"Failed to patch {self.table_name} record", key=key) from e

        if result.rowcount == 0:
            raise RecordStoreError(f"Record not found: {key}", key=key)

    async def add(self, document: Dict[str, Any], key: Optional[str] = None) -> str:
        values = self._to_values(key or "", document)
        values["id"] = key or new_record_id()

        try:
            async with self.session_factory() as db:
                row = self.model(**values)
                db.add(row)
                await db.commit()
                return values["id"]
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert into {self.table_name}: {e}")
            raise RecordStoreError(f"Failed to insert {self.table_name} record", key=key) from e
