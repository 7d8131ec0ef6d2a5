"""PostgreSQL and Supabase connectors."""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
import logging

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import parse_dsn
from psycopg2.extras import Json, RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from ..exceptions import BatchWriteError, ConnectorError, DiscoveryError, SchemaInspectionError
from ..models.config import PostgreSQLConfig, SupabaseConfig
from ..models.results import CreateTableResult, RecordError, WriteResult
from ..models.schema import CollectionInfo, ColumnDefinition, ForeignKey, TableSchema
from .base import BaseConnector, Record

logger = logging.getLogger(__name__)

POSTGRES_TO_FIELD_TYPE = {
    "character varying": "string",
    "varchar": "string",
    "character": "string",
    "char": "string",
    "text": "string",
    "integer": "integer",
    "bigint": "integer",
    "smallint": "integer",
    "serial": "integer",
    "bigserial": "integer",
    "real": "float",
    "double precision": "float",
    "numeric": "number",
    "decimal": "number",
    "boolean": "boolean",
    "date": "date",
    "timestamp": "timestamp",
    "timestamp with time zone": "timestamp",
    "timestamp without time zone": "timestamp",
    "time": "time",
    "time without time zone": "time",
    "json": "json",
    "jsonb": "json",
    "uuid": "uuid",
    "bytea": "binary",
    "array": "array",
}

FIELD_TYPE_TO_POSTGRES = {
    "string": "TEXT",
    "text": "TEXT",
    "integer": "INTEGER",
    "number": "NUMERIC",
    "float": "REAL",
    "boolean": "BOOLEAN",
    "date": "DATE",
    "timestamp": "TIMESTAMP",
    "json": "JSONB",
    "object": "JSONB",
    "array": "JSONB",
    "uuid": "UUID",
    "binary": "BYTEA",
}

POOL_MIN_CONNECTIONS = 1
POOL_MAX_CONNECTIONS = 10
CONNECT_TIMEOUT_SECONDS = 10


def map_postgres_type(pg_type: str) -> str:
    """Map a PostgreSQL data type to a standard field type (default: string)."""
    return POSTGRES_TO_FIELD_TYPE.get((pg_type or "").lower(), "string")


def map_type_to_postgres(field_type: Any) -> str:
    """Map a standard field type to a PostgreSQL column type (default: TEXT)."""
    if isinstance(field_type, list):
        # Mixed types can only be stored losslessly as JSON
        return "JSONB" if len(field_type) > 1 else map_type_to_postgres(field_type[0])
    return FIELD_TYPE_TO_POSTGRES.get(str(field_type).lower(), "TEXT")


def _adapt_value(value: Any) -> Any:
    # Arrays are stored in JSONB columns, never as native Postgres arrays
    if isinstance(value, (dict, list)):
        return Json(value)
    return value


class PostgresCore:
    """
    PostgreSQL protocol core shared by every Postgres-flavored connector.

    Owns a lazily created connection pool and all SQL. Connectors wrap one
    core rather than subclassing each other.
    """

    def __init__(self, connect_kwargs: Dict[str, Any], db_schema: str = "public"):
        """
        Initialize the core.

        Args:
            connect_kwargs: Keyword arguments for psycopg2.connect
            db_schema: Schema that tables are read from and written to
        """
        self.connect_kwargs = connect_kwargs
        self.db_schema = db_schema
        self._pool: Optional[ThreadedConnectionPool] = None

    def _get_pool(self) -> ThreadedConnectionPool:
        if self._pool is None:
            try:
                self._pool = ThreadedConnectionPool(
                    POOL_MIN_CONNECTIONS,
                    POOL_MAX_CONNECTIONS,
                    **self.connect_kwargs,
                )
            except psycopg2.Error as e:
                raise ConnectorError(f"Failed to initialize PostgreSQL pool: {e}") from e
            logger.info(
                f"Opened PostgreSQL pool to {self.connect_kwargs.get('host')}/"
                f"{self.connect_kwargs.get('dbname')}"
            )
        return self._pool

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Borrow a pooled connection, rolling back on error."""
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def _table(self, name: str) -> sql.Identifier:
        return sql.Identifier(self.db_schema, name)

    def query(self, query: Any, params: Optional[Any] = None) -> List[Dict[str, Any]]:
        """Run a read-only query and return rows as dicts."""
        with self.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()]
            conn.commit()
        return rows

    def ping(self) -> str:
        rows = self.query("SELECT version() AS version")
        return rows[0]["version"] if rows else ""

    def list_tables(self) -> List[Dict[str, Any]]:
        return self.query(
            """
            SELECT t.table_name,
                   c.reltuples::bigint AS approx_count
            FROM information_schema.tables t
            LEFT JOIN pg_class c ON c.relname = t.table_name
            LEFT JOIN pg_namespace n ON n.oid = c.relnamespace AND n.nspname = t.table_schema
            WHERE t.table_schema = %s
            AND t.table_type = 'BASE TABLE'
            AND (c.oid IS NULL OR n.oid IS NOT NULL)
            ORDER BY t.table_name
            """,
            (self.db_schema,),
        )

    def get_primary_keys(self, name: str) -> List[str]:
        rows = self.query(
            """
            SELECT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON tc.constraint_name = kcu.constraint_name
              AND tc.table_schema = kcu.table_schema
            WHERE tc.constraint_type = 'PRIMARY KEY'
            AND tc.table_schema = %s
            AND tc.table_name = %s
            ORDER BY kcu.ordinal_position
            """,
            (self.db_schema, name),
        )
        return [row["column_name"] for row in rows]

    def get_foreign_keys(self, name: str) -> List[ForeignKey]:
        rows = self.query(
            """
            SELECT tc.constraint_name,
                   kcu.column_name,
                   ccu.table_name AS foreign_table_name,
                   ccu.column_name AS foreign_column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON tc.constraint_name = kcu.constraint_name
              AND tc.table_schema = kcu.table_schema
            JOIN information_schema.constraint_column_usage ccu
              ON ccu.constraint_name = tc.constraint_name
              AND ccu.table_schema = tc.table_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
            AND tc.table_schema = %s
            AND tc.table_name = %s
            """,
            (self.db_schema, name),
        )
        return [
            ForeignKey(
                column=row["column_name"],
                foreign_table=row["foreign_table_name"],
                foreign_column=row["foreign_column_name"],
                constraint_name=row["constraint_name"],
            )
            for row in rows
        ]

    def get_schema(self, name: str) -> TableSchema:
        try:
            rows = self.query(
                """
                SELECT column_name, data_type, is_nullable, column_default,
                       character_maximum_length
                FROM information_schema.columns
                WHERE table_schema = %s
                AND table_name = %s
                ORDER BY ordinal_position
                """,
                (self.db_schema, name),
            )
            if not rows:
                raise SchemaInspectionError(name, f"table not found in schema {self.db_schema}")

            columns = {
                row["column_name"]: ColumnDefinition(
                    type=map_postgres_type(row["data_type"]),
                    nullable=row["is_nullable"] == "YES",
                    default=row["column_default"],
                    max_length=row["character_maximum_length"],
                )
                for row in rows
            }
            return TableSchema(
                columns=columns,
                primary_keys=self.get_primary_keys(name),
                foreign_keys=self.get_foreign_keys(name),
            )
        except SchemaInspectionError:
            raise
        except (psycopg2.Error, ConnectorError) as e:
            raise SchemaInspectionError(name, str(e)) from e

    def count(self, name: str) -> int:
        rows = self.query(
            sql.SQL("SELECT COUNT(*) AS total FROM {}").format(self._table(name))
        )
        return int(rows[0]["total"])

    def fetch_page(self, name: str, offset: int, size: int) -> List[Record]:
        return self.query(
            sql.SQL("SELECT * FROM {} ORDER BY 1 LIMIT %s OFFSET %s").format(self._table(name)),
            (size, offset),
        )

    def _write_statement(
        self,
        name: str,
        columns: List[str],
        upsert: bool,
        conflict_columns: List[str]
    ) -> sql.Composed:
        statement = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
            table=self._table(name),
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        if not (upsert and conflict_columns):
            return statement

        update_columns = [c for c in columns if c not in conflict_columns]
        if update_columns:
            action = sql.SQL("DO UPDATE SET {}").format(
                sql.SQL(", ").join(
                    sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(c))
                    for c in update_columns
                )
            )
        else:
            action = sql.SQL("DO NOTHING")

        return sql.SQL("{insert} ON CONFLICT ({conflict}) {action}").format(
            insert=statement,
            conflict=sql.SQL(", ").join(sql.Identifier(c) for c in conflict_columns),
            action=action,
        )

    def write_batch(
        self,
        name: str,
        records: List[Record],
        upsert: bool = False,
        conflict_columns: Optional[List[str]] = None
    ) -> WriteResult:
        """
        Insert or upsert records in one transaction.

        Each record runs inside its own savepoint so a failing row is rolled
        back alone and the rest of the batch still commits.
        """
        if not records:
            return WriteResult(success=True, count=0)

        conflict = list(conflict_columns or [])
        errors: List[RecordError] = []

        try:
            if upsert and not conflict:
                conflict = self.get_primary_keys(name)
                if not conflict:
                    logger.warning(
                        f"Upsert into {name} has no conflict columns and the table has no "
                        f"primary key, inserting {len(records)} records instead"
                    )

            with self.connection() as conn:
                with conn.cursor() as cur:
                    for index, record in enumerate(records):
                        columns = list(record.keys())
                        values = [_adapt_value(record[c]) for c in columns]
                        statement = self._write_statement(name, columns, upsert, conflict)

                        cur.execute("SAVEPOINT dbmigrate_record")
                        try:
                            cur.execute(statement, values)
                        except (psycopg2.Error, TypeError, ValueError) as e:
                            cur.execute("ROLLBACK TO SAVEPOINT dbmigrate_record")
                            errors.append(RecordError.from_exception(e, index=index, record=record))
                            logger.error(f"Failed to write record {index} to {name}: {e}")
                        else:
                            cur.execute("RELEASE SAVEPOINT dbmigrate_record")
                conn.commit()
        except (psycopg2.Error, ConnectorError) as e:
            failure = BatchWriteError(name, str(e))
            logger.error(str(failure))
            return WriteResult(
                success=False,
                count=0,
                errors=[RecordError.from_exception(failure)],
            )

        return WriteResult.from_errors(len(records), errors)

    def create_table(self, name: str, schema: TableSchema) -> CreateTableResult:
        definitions = []
        for column_name, column in schema.columns.items():
            parts = [sql.Identifier(column_name), sql.SQL(map_type_to_postgres(column.type))]
            if not column.nullable:
                parts.append(sql.SQL("NOT NULL"))
            if column.default is not None:
                parts.append(sql.SQL("DEFAULT {}").format(sql.Literal(_adapt_value(column.default))))
            definitions.append(sql.SQL(" ").join(parts))

        if schema.primary_keys:
            definitions.append(sql.SQL("PRIMARY KEY ({})").format(
                sql.SQL(", ").join(sql.Identifier(k) for k in schema.primary_keys)
            ))

        statement = sql.SQL("CREATE TABLE IF NOT EXISTS {table} ({definitions})").format(
            table=self._table(name),
            definitions=sql.SQL(", ").join(definitions),
        )

        try:
            with self.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(statement)
                conn.commit()
        except (psycopg2.Error, ConnectorError) as e:
            logger.error(f"Failed to create table {name}: {e}")
            return CreateTableResult(success=False, message=f"Failed to create table: {e}")

        logger.info(f"Created table {self.db_schema}.{name}")
        return CreateTableResult(success=True, message=f"Table {name} created successfully")

    def close(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            pool.closeall()


class _PostgresAdapter(BaseConnector):
    """Delegates every connector operation to a PostgresCore."""

    core: PostgresCore

    def ping(self) -> str:
        return self.core.ping()

    def discover(self) -> List[CollectionInfo]:
        try:
            tables = self.core.list_tables()
        except (psycopg2.Error, ConnectorError) as e:
            raise DiscoveryError(f"Failed to discover tables: {e}") from e

        result = []
        for row in tables:
            approx = row.get("approx_count")
            result.append(CollectionInfo(
                name=row["table_name"],
                type="table",
                schema=self.get_schema(row["table_name"]),
                approx_count=int(approx) if approx is not None and approx >= 0 else None,
            ))
        return result

    def get_schema(self, name: str) -> TableSchema:
        return self.core.get_schema(name)

    def count(self, name: str) -> Optional[int]:
        return self.core.count(name)

    def fetch_page(self, name: str, offset: int, size: int) -> List[Record]:
        return self.core.fetch_page(name, offset, size)

    def write_batch(
        self,
        name: str,
        records: List[Record],
        upsert: bool = False,
        conflict_columns: Optional[List[str]] = None
    ) -> WriteResult:
        return self.core.write_batch(name, records, upsert=upsert, conflict_columns=conflict_columns)

    def create_table(self, name: str, schema: TableSchema) -> CreateTableResult:
        return self.core.create_table(name, schema)

    def _close(self) -> None:
        self.core.close()


class PostgreSQLConnector(_PostgresAdapter):
    """Connector for a PostgreSQL database."""

    db_type = "postgresql"
    display_name = "PostgreSQL"

    def __init__(self, config: PostgreSQLConfig):
        super().__init__(config)
        self.core = PostgresCore(
            {
                "host": config.host,
                "port": config.port,
                "dbname": config.database,
                "user": config.user,
                "password": config.password,
                "sslmode": "require" if config.ssl else "prefer",
                "connect_timeout": CONNECT_TIMEOUT_SECONDS,
            },
            db_schema=config.db_schema,
        )


def supabase_connect_kwargs(config: SupabaseConfig) -> Dict[str, Any]:
    """
    Build psycopg2 connection arguments for Supabase.

    Discrete fields override values parsed from the connection string.
    """
    kwargs: Dict[str, Any] = {}
    if config.connection_string:
        kwargs.update(parse_dsn(config.connection_string))

    overrides = {
        "host": config.host,
        "port": config.port if config.host else None,
        "user": config.user,
        "password": config.password,
    }
    for key, value in overrides.items():
        if value is not None:
            kwargs[key] = value

    kwargs.setdefault("port", config.port)
    kwargs.setdefault("dbname", config.database)
    if config.ssl:
        kwargs["sslmode"] = "require"
    else:
        kwargs.setdefault("sslmode", "prefer")
    kwargs.setdefault("connect_timeout", CONNECT_TIMEOUT_SECONDS)
    return kwargs


class SupabaseConnector(_PostgresAdapter):
    """Connector for a Supabase project (PostgreSQL with SSL by default)."""

    db_type = "supabase"
    display_name = "Supabase"

    def __init__(self, config: SupabaseConfig):
        super().__init__(config)
        self.core = PostgresCore(supabase_connect_kwargs(config), db_schema=config.db_schema)
