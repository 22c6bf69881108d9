"""SQL repository backed by SQLAlchemy Core."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    inspect,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..config.models import DatabaseConfig
from ..models import AccessRequest, RequestStatus, WhitelistEntry
from .base import (
    AccessRequestRepository,
    CreateResult,
    RenameResult,
    StorageUnavailable,
    UpdateResult,
)
from .memory import utc_now

logger = logging.getLogger(__name__)

metadata = MetaData()

# Usernames compare case-sensitively on every backend
Username = String(36).with_variant(
    String(36, collation="utf8mb4_bin"), "mysql", "mariadb"
)

whitelist_table = Table(
    "whitelist",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", Username, nullable=False, unique=True),
    Column("uuid", String(36), nullable=True, unique=True),
)

requests_table = Table(
    "temporarylogin",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", Username, nullable=False, unique=True),
    Column("request_time", DateTime, nullable=False),
    Column("status", String(20), nullable=False, default=RequestStatus.PENDING.value),
    Column("update_time", DateTime, nullable=True),
)


def _to_db(value: datetime) -> datetime:
    # Columns hold naive UTC timestamps
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def create_db_engine(url: str, pool_size: int = 10) -> Engine:
    """Create an engine with the connection pool settings used in production."""
    options: dict = {"pool_pre_ping": True}

    if make_url(url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(pool_size=pool_size, max_overflow=10, pool_recycle=1800)

    return create_engine(url, **options)


class SqlRepository(AccessRequestRepository):
    """Repository on top of a relational database.

    Blocking database calls run in a worker thread. ``IntegrityError`` on the
    unique username column is how concurrent request creation collapses into
    a single row.
    """

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utc_now):
        self.engine = engine
        self.clock = clock

    @classmethod
    def from_config(
        cls, config: DatabaseConfig, clock: Callable[[], datetime] = utc_now
    ) -> "SqlRepository":
        logger.info(f"Connecting to database: {cls.describe_url(config)}")
        return cls(create_db_engine(config.sqlalchemy_url(), config.pool_size), clock=clock)

    @staticmethod
    def describe_url(config: DatabaseConfig) -> str:
        """Connection URL with the password masked."""
        return make_url(config.sqlalchemy_url()).render_as_string(hide_password=True)

    async def initialize(self) -> None:
        await self._run(self._create_schema)
        logger.info("Database tables checked/created successfully")

    async def close(self) -> None:
        await asyncio.to_thread(self.engine.dispose)

    async def _run(self, operation: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(operation, *args)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Database operation failed: {e}") from e

    # Whitelist

    async def find_whitelist_entry(self, username: str) -> Optional[WhitelistEntry]:
        query = select(whitelist_table).where(whitelist_table.c.username == username)
        return await self._run(self._fetch_entry, query)

    async def find_whitelist_entry_by_stable_id(
        self, stable_id: str
    ) -> Optional[WhitelistEntry]:
        query = select(whitelist_table).where(whitelist_table.c.uuid == stable_id)
        return await self._run(self._fetch_entry, query)

    async def rename_whitelist_entry(
        self, stable_id: str, new_username: str
    ) -> RenameResult:
        statement = (
            update(whitelist_table)
            .where(whitelist_table.c.uuid == stable_id)
            .values(username=new_username)
        )
        rowcount = await self._run(self._execute, statement)
        return RenameResult.OK if rowcount else RenameResult.NOT_FOUND

    async def add_whitelist_entry(
        self, username: str, stable_id: Optional[str] = None
    ) -> WhitelistEntry:
        statement = insert(whitelist_table).values(username=username, uuid=stable_id)
        created = await self._run(self._insert_unique, statement)
        if not created:
            raise ValueError(f"Whitelist entry already exists: {username}")
        return WhitelistEntry(username=username, stable_id=stable_id)

    async def list_whitelist_entries(self) -> List[WhitelistEntry]:
        query = select(whitelist_table).order_by(whitelist_table.c.username)
        rows = await self._run(self._fetch_all, query)
        return [WhitelistEntry(username=row.username, stable_id=row.uuid) for row in rows]

    # Access requests

    async def find_access_request(self, username: str) -> Optional[AccessRequest]:
        query = select(requests_table).where(requests_table.c.username == username)
        rows = await self._run(self._fetch_all, query)
        return self._to_request(rows[0]) if rows else None

    async def create_access_request(self, username: str) -> CreateResult:
        statement = insert(requests_table).values(
            username=username,
            request_time=_to_db(self.clock()),
            status=RequestStatus.PENDING.value,
        )
        created = await self._run(self._insert_unique, statement)
        return CreateResult.CREATED if created else CreateResult.CONFLICT

    async def set_access_request_status(
        self, username: str, expected: RequestStatus, new: RequestStatus
    ) -> UpdateResult:
        self._check_transition(expected, new)

        statement = (
            update(requests_table)
            .where(requests_table.c.username == username)
            .where(requests_table.c.status == expected.value)
            .values(status=new.value, update_time=_to_db(self.clock()))
        )
        rowcount = await self._run(self._execute, statement)
        return UpdateResult.UPDATED if rowcount else UpdateResult.NO_MATCH

    async def delete_access_request(
        self, username: str, status: Optional[RequestStatus] = None
    ) -> None:
        statement = delete(requests_table).where(requests_table.c.username == username)
        if status is not None:
            statement = statement.where(requests_table.c.status == status.value)
        await self._run(self._execute, statement)

    async def delete_requests_older_than(self, max_age: timedelta) -> int:
        cutoff = _to_db(self.clock() - max_age)
        statement = delete(requests_table).where(requests_table.c.request_time < cutoff)
        return await self._run(self._execute, statement)

    async def list_access_requests(self) -> List[AccessRequest]:
        query = select(requests_table).order_by(requests_table.c.request_time)
        rows = await self._run(self._fetch_all, query)
        return [self._to_request(row) for row in rows]

    # Blocking helpers, run in a worker thread

    def _create_schema(self) -> None:
        metadata.create_all(self.engine)

        # Tables created before stable ids were tracked lack the uuid column
        columns = {column["name"] for column in inspect(self.engine).get_columns("whitelist")}
        if "uuid" not in columns:
            with self.engine.begin() as conn:
                conn.execute(text("ALTER TABLE whitelist ADD COLUMN uuid VARCHAR(36) NULL"))
            logger.info("Added uuid column to the whitelist table")

    def _execute(self, statement) -> int:
        with self.engine.begin() as conn:
            return conn.execute(statement).rowcount

    def _insert_unique(self, statement) -> bool:
        try:
            with self.engine.begin() as conn:
                conn.execute(statement)
        except IntegrityError:
            return False
        return True

    def _fetch_all(self, query) -> list:
        with self.engine.connect() as conn:
            return list(conn.execute(query))

    def _fetch_entry(self, query) -> Optional[WhitelistEntry]:
        with self.engine.connect() as conn:
            row = conn.execute(query).first()
        if row is None:
            return None
        return WhitelistEntry(username=row.username, stable_id=row.uuid)

    def _to_request(self, row) -> AccessRequest:
        return AccessRequest(
            username=row.username,
            requested_at=_from_db(row.request_time),
            status=RequestStatus(row.status),
            updated_at=_from_db(row.update_time),
        )
