import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import Table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..core.logger import get_logger
from ..db.database import Base, build_engine, build_session_factory, init_db
from .backend import BackendResult, Filters, Order, Row

log = get_logger("services.sql_backend")


class InvalidQueryError(Exception):
    pass


def _now_dt() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_iso(s: str) -> datetime:
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _to_row(table: Table, record: Any) -> Row:
    out: Row = {}
    for column in table.columns:
        value = record._mapping[column]
        out[column.name] = _iso(value) if isinstance(value, datetime) else value
    return out


class SqlChatBackend:
    """
    Local implementation of the backend contract on a SQLAlchemy engine.

    Timestamps are stored as naive UTC datetimes and returned as ISO-8601
    strings. Work runs in a thread so the event loop is never blocked.
    """

    def __init__(self, database_url: Optional[str] = None, *, engine: Optional[Engine] = None):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = build_engine(database_url)
        self._engine = engine
        init_db(engine)
        self._session_factory = build_session_factory(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def _table(self, name: str) -> Optional[Table]:
        return Base.metadata.tables.get(name)

    def _conditions(self, table: Table, filters: Optional[Filters], required: bool = False) -> List[Any]:
        if required and not filters:
            raise InvalidQueryError("UPDATE and DELETE require a WHERE clause")
        conds = []
        for name, value in (filters or {}).items():
            if name not in table.c:
                raise InvalidQueryError(f'column {table.name}.{name} does not exist')
            conds.append(table.c[name] == value)
        return conds

    def _coerce(self, table: Table, values: Row) -> Row:
        out: Row = {}
        for name, value in values.items():
            if name not in table.c:
                raise InvalidQueryError(f'column "{name}" of relation "{table.name}" does not exist')
            if isinstance(value, str) and name in ("createdAt", "updatedAt"):
                value = _parse_iso(value)
            out[name] = value
        return out

    async def _run(self, operation: str, table_name: str, work: Callable[[Table], BackendResult]) -> BackendResult:
        table = self._table(table_name)
        if table is None:
            return BackendResult(error=f'relation "public.{table_name}" does not exist')

        def call() -> BackendResult:
            try:
                return work(table)
            except InvalidQueryError as e:
                return BackendResult(error=str(e))
            except SQLAlchemyError as e:
                log.warning(f"{operation} on {table_name} failed: {e}")
                return BackendResult(error=str(getattr(e, "orig", None) or e))

        return await asyncio.to_thread(call)

    async def select(self, table: str, filters: Optional[Filters] = None, order: Optional[Order] = None) -> BackendResult:
        def work(t: Table) -> BackendResult:
            stmt = t.select().where(*self._conditions(t, filters))
            if order is not None:
                column, ascending = order
                if column not in t.c:
                    raise InvalidQueryError(f"column {t.name}.{column} does not exist")
                stmt = stmt.order_by(t.c[column].asc() if ascending else t.c[column].desc())
            with self._session_factory() as db:
                rows = db.execute(stmt).fetchall()
            return BackendResult(data=[_to_row(t, r) for r in rows])

        return await self._run("select", table, work)

    async def insert(self, table: str, row: Row) -> BackendResult:
        def work(t: Table) -> BackendResult:
            values = self._coerce(t, row)
            now = _now_dt()
            values.setdefault("id", str(uuid.uuid4()))
            for name in ("createdAt", "updatedAt"):
                if name in t.c:
                    values.setdefault(name, now)
            with self._session_factory() as db:
                db.execute(t.insert().values(**values))
                db.commit()
                created = db.execute(t.select().where(t.c.id == values["id"])).fetchone()
            return BackendResult(data=[_to_row(t, created)])

        return await self._run("insert", table, work)

    async def update(self, table: str, values: Row, filters: Filters) -> BackendResult:
        def work(t: Table) -> BackendResult:
            conds = self._conditions(t, filters, required=True)
            changes = self._coerce(t, values)
            if "updatedAt" in t.c:
                changes.setdefault("updatedAt", _now_dt())
            with self._session_factory() as db:
                ids = [r.id for r in db.execute(t.select().where(*conds)).fetchall()]
                if ids:
                    db.execute(t.update().where(t.c.id.in_(ids)).values(**changes))
                    db.commit()
                rows = db.execute(t.select().where(t.c.id.in_(ids))).fetchall() if ids else []
            return BackendResult(data=[_to_row(t, r) for r in rows])

        return await self._run("update", table, work)

    async def delete(self, table: str, filters: Filters) -> BackendResult:
        def work(t: Table) -> BackendResult:
            conds = self._conditions(t, filters, required=True)
            with self._session_factory() as db:
                db.execute(t.delete().where(*conds))
                db.commit()
            return BackendResult(data=None)

        return await self._run("delete", table, work)

    async def aclose(self) -> None:
        await asyncio.to_thread(self._engine.dispose)
