"""
Data access facade over the hosted data store.

Views and services only ever see four operations over named tables:
``select``, ``insert``, ``update`` and ``delete``. Rows travel as plain
dicts. Two backends implement the facade: ``SqlDataStore`` (SQLAlchemy,
the default) and ``SupabaseDataStore`` (a hosted Supabase project).
Every collaborator failure is re-raised as ``DataStoreError`` with the
collaborator's message kept verbatim.
"""

import datetime
import logging
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from config import DATASTORE_BACKEND, SUPABASE_KEY, SUPABASE_URL
from errors import DataStoreError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
Filters = Mapping[str, Any]
Embed = Mapping[str, Sequence[str]]


class Order(NamedTuple):
    column: str
    descending: bool = False


class DataStore:
    """
    Interface every backend implements.

    Both bundled backends drive synchronous clients, so their coroutines
    finish without yielding to the event loop. Gathering several calls
    runs them one after another, in the order they were passed.
    """

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Optional[Sequence[Order]] = None,
        limit: Optional[int] = None,
        embed: Optional[Embed] = None,
    ) -> List[Row]:
        raise NotImplementedError

    async def select_one(self, table: str, filters: Filters, embed: Optional[Embed] = None) -> Optional[Row]:
        """At most one row, or None."""
        rows = await self.select(table, filters, limit=1, embed=embed)
        return rows[0] if rows else None

    async def insert(self, table: str, rows: Iterable[Row]) -> List[Row]:
        raise NotImplementedError

    async def update(self, table: str, row_id: str, patch: Row) -> Row:
        raise NotImplementedError

    async def delete(self, table: str, filters: Filters) -> None:
        raise NotImplementedError


# ---------- SQLAlchemy backend ----------

def _row_to_dict(obj) -> Row:
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}


class SqlDataStore(DataStore):
    """Facade backed by the SQLAlchemy session factory from ``database``."""

    def __init__(self, session_factory):
        import models

        self._session_factory = session_factory
        self._tables = {
            "profiles": models.Profile,
            "portfolios": models.Portfolio,
            "education": models.Education,
            "experience": models.Experience,
            "projects": models.Project,
            "skills": models.Skill,
        }
        # (table, embedded table) -> foreign key column on the table
        self._relations = {
            ("portfolios", "profiles"): models.Portfolio.user_id,
        }

    def _model(self, table: str):
        try:
            return self._tables[table]
        except KeyError:
            raise DataStoreError(f'relation "{table}" does not exist', table) from None

    @staticmethod
    def _column(model, name: str, table: str):
        column = model.__table__.columns.get(name)
        if column is None:
            raise DataStoreError(f"column {table}.{name} does not exist", table)
        return column

    async def select(self, table, filters=None, order=None, limit=None, embed=None):
        model = self._model(table)
        joined = []
        with self._session_factory() as db:
            try:
                entities = [model]
                for name in (embed or {}):
                    fk = self._relations.get((table, name))
                    if fk is None:
                        raise DataStoreError(
                            f"Could not find a relationship between '{table}' and '{name}'", table
                        )
                    other = self._model(name)
                    entities.append(other)
                    joined.append((name, other, fk))

                query = db.query(*entities)
                for name, other, fk in joined:
                    query = query.join(other, fk == other.id)
                for key, value in (filters or {}).items():
                    query = query.filter(self._column(model, key, table) == value)
                for item in order or ():
                    column = self._column(model, item.column, table)
                    query = query.order_by(column.desc() if item.descending else column.asc())
                if limit is not None:
                    query = query.limit(limit)

                rows = []
                for result in query.all():
                    if not joined:
                        rows.append(_row_to_dict(result))
                        continue
                    row = _row_to_dict(result[0])
                    for (name, _other, _fk), embedded in zip(joined, result[1:]):
                        row[name] = {col: getattr(embedded, col) for col in embed[name]}
                    rows.append(row)
                return rows
            except SQLAlchemyError as e:
                raise DataStoreError(str(getattr(e, "orig", None) or e), table) from e

    async def insert(self, table, rows):
        model = self._model(table)
        with self._session_factory() as db:
            try:
                objects = [model(**row) for row in rows]
                db.add_all(objects)
                db.commit()
                return [_row_to_dict(obj) for obj in objects]
            except TypeError as e:
                db.rollback()
                raise DataStoreError(str(e), table) from e
            except SQLAlchemyError as e:
                db.rollback()
                raise DataStoreError(str(getattr(e, "orig", None) or e), table) from e

    async def update(self, table, row_id, patch):
        model = self._model(table)
        with self._session_factory() as db:
            try:
                obj = db.get(model, row_id)
                if obj is None:
                    raise DataStoreError(f"No row in {table} with id {row_id}", table)
                for key, value in patch.items():
                    self._column(model, key, table)
                    setattr(obj, key, value)
                db.commit()
                return _row_to_dict(obj)
            except SQLAlchemyError as e:
                db.rollback()
                raise DataStoreError(str(getattr(e, "orig", None) or e), table) from e

    async def delete(self, table, filters):
        model = self._model(table)
        with self._session_factory() as db:
            try:
                query = db.query(model)
                for key, value in filters.items():
                    query = query.filter(self._column(model, key, table) == value)
                count = query.delete(synchronize_session=False)
                db.commit()
                logger.debug("Deleted %d rows from %s", count, table)
            except SQLAlchemyError as e:
                db.rollback()
                raise DataStoreError(str(getattr(e, "orig", None) or e), table) from e


# ---------- Supabase backend ----------

def _jsonable(row: Row) -> Row:
    return {k: v.isoformat() if isinstance(v, datetime.datetime) else v for k, v in row.items()}


class SupabaseDataStore(DataStore):
    """Facade backed by a ``supabase.Client`` (PostgREST query builder)."""

    def __init__(self, client):
        self._client = client

    @staticmethod
    def _fail(table: str, e: Exception) -> DataStoreError:
        return DataStoreError(getattr(e, "message", None) or str(e), table)

    async def select(self, table, filters=None, order=None, limit=None, embed=None):
        columns = "*"
        for name, cols in (embed or {}).items():
            columns += f", {name}({', '.join(cols)})"
        try:
            query = self._client.table(table).select(columns)
            for key, value in (filters or {}).items():
                query = query.eq(key, value)
            for item in order or ():
                query = query.order(item.column, desc=item.descending)
            if limit is not None:
                query = query.limit(limit)
            response = query.execute()
            return response.data if response.data else []
        except Exception as e:
            raise self._fail(table, e) from e

    async def insert(self, table, rows):
        rows = [_jsonable(row) for row in rows]
        try:
            response = self._client.table(table).insert(rows).execute()
            return response.data if response.data else []
        except Exception as e:
            raise self._fail(table, e) from e

    async def update(self, table, row_id, patch):
        try:
            response = self._client.table(table).update(_jsonable(patch)).eq("id", row_id).execute()
        except Exception as e:
            raise self._fail(table, e) from e
        if not response.data:
            raise DataStoreError(f"No row in {table} with id {row_id}", table)
        return response.data[0]

    async def delete(self, table, filters):
        try:
            query = self._client.table(table).delete()
            for key, value in filters.items():
                query = query.eq(key, value)
            query.execute()
        except Exception as e:
            raise self._fail(table, e) from e


# ---------- Factory ----------

_datastore: Optional[DataStore] = None


def _create_supabase_client():
    from supabase import create_client

    if not SUPABASE_URL:
        raise ValueError(
            "SUPABASE_URL environment variable is not set. "
            "Please add it to your .env file: SUPABASE_URL=https://your-project.supabase.co"
        )
    if not SUPABASE_KEY:
        raise ValueError("SUPABASE_KEY environment variable is not set. Please add it to your .env file.")
    if not SUPABASE_URL.startswith("http"):
        raise ValueError(f"Invalid SUPABASE_URL format: {SUPABASE_URL}. URL should start with https://")
    return create_client(SUPABASE_URL, SUPABASE_KEY)


def get_datastore() -> DataStore:
    """Process-wide data store for the configured backend, created once."""
    global _datastore

    if _datastore is None:
        if DATASTORE_BACKEND == "supabase":
            _datastore = SupabaseDataStore(_create_supabase_client())
        else:
            from database import SessionLocal

            _datastore = SqlDataStore(SessionLocal)
        logger.info("Data store backend: %s", type(_datastore).__name__)
    return _datastore
