"""
SQL repository for exchange records.

All statements are plain SQL text: the pipeline protocol used here has no
bound parameters, so string values go through ``escape_sql_string``.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from shared.logging import get_logger

from ..adapters.turso_client import TursoClient
from ..adapters.turso_models import Cell
from .exchange import Exchange


TABLE_NAME = "ExchangeTable"
COLUMNS = "id, requestOpener, requestFollower, openerCard, followerCard, date"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
MIN_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)

CREATE_TABLE_SQL = f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        requestOpener TEXT NOT NULL,
        requestFollower TEXT NOT NULL,
        openerCard TEXT NOT NULL,
        followerCard TEXT NOT NULL,
        date TEXT NOT NULL
    )"""


def escape_sql_string(value: str) -> str:
    """Escape a value for a single-quoted SQL literal."""
    return value.replace("'", "''")


def format_timestamp(value: datetime) -> str:
    """Render a timestamp in the stored UTC text format."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_int(text: Optional[str]) -> int:
    try:
        return int(text.strip()) if text is not None else 0
    except ValueError:
        return 0


def parse_timestamp(text: Optional[str]) -> datetime:
    """Parse a stored timestamp; unparseable input maps to MIN_TIMESTAMP."""
    if not text:
        return MIN_TIMESTAMP
    text = text.strip()
    try:
        parsed = datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return MIN_TIMESTAMP
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _cell_text(cell: Optional[Cell]) -> Optional[str]:
    return cell.text if cell is not None else None


def map_row(row: Sequence[Optional[Cell]]) -> Optional[Exchange]:
    """Map a result row to an Exchange; None when the row is too short."""
    if row is None or len(row) < 6:
        return None

    return Exchange(
        id=parse_int(_cell_text(row[0])),
        opener=_cell_text(row[1]) or "",
        follower=_cell_text(row[2]) or "",
        opener_card=_cell_text(row[3]) or "",
        follower_card=_cell_text(row[4]) or "",
        occurred_at=parse_timestamp(_cell_text(row[5])),
    )


class ExchangeRepository:
    """Exchange persistence expressed as SQL over the Turso client."""

    def __init__(self, client: TursoClient):
        if client is None:
            raise ValueError("client is required")
        self.client = client
        self.logger = get_logger("connector.exchange_repository")

    async def create_table(self) -> bool:
        """Create the exchange table if it does not exist."""
        result = await self.client.execute_sql(CREATE_TABLE_SQL)
        success = result is not None and result.has_result_set()

        if success:
            self.logger.info("Exchange table created or already exists", table=TABLE_NAME)
        else:
            self.logger.error("Failed to create exchange table", table=TABLE_NAME)

        return success

    async def insert(self, exchange: Exchange) -> Optional[Exchange]:
        """Insert an exchange; returns it with the store-assigned id, or None."""
        sql = (
            f"INSERT INTO {TABLE_NAME} (requestOpener, requestFollower, openerCard, followerCard, date) "
            f"VALUES ('{escape_sql_string(exchange.opener)}', "
            f"'{escape_sql_string(exchange.follower)}', "
            f"'{escape_sql_string(exchange.opener_card)}', "
            f"'{escape_sql_string(exchange.follower_card)}', "
            f"'{format_timestamp(exchange.occurred_at)}')"
        )

        result = await self.client.execute_sql(sql)
        if result is None or not result.has_result_set():
            self.logger.error("Failed to insert exchange", opener=exchange.opener, follower=exchange.follower)
            return None

        execute_result = result.first_result()
        rowid = execute_result.last_insert_rowid if execute_result is not None else None
        persisted = exchange.with_id(parse_int(rowid))

        self.logger.info("Exchange inserted successfully", exchange_id=persisted.id)
        return persisted

    async def fetch_all(self) -> List[Exchange]:
        """All exchanges, newest first. Malformed rows are skipped."""
        sql = f"SELECT {COLUMNS} FROM {TABLE_NAME} ORDER BY date DESC"
        result = await self.client.execute_sql(sql)
        exchanges: List[Exchange] = []

        rows = result.rows() if result is not None else []
        if not rows:
            self.logger.info("No exchanges found in the database")
            return exchanges

        for index, row in enumerate(rows):
            exchange = map_row(row)
            if exchange is None:
                self.logger.error(
                    "Error converting row to Exchange",
                    row_index=index,
                    cell_count=len(row) if row is not None else 0,
                )
                continue
            exchanges.append(exchange)

        self.logger.info("Exchanges retrieved", count=len(exchanges))
        return exchanges

    async def fetch_by_id(self, exchange_id: int) -> Optional[Exchange]:
        """Exchange with the given id, or None."""
        sql = f"SELECT {COLUMNS} FROM {TABLE_NAME} WHERE id = {int(exchange_id)}"
        result = await self.client.execute_sql(sql)

        rows = result.rows() if result is not None else []
        if not rows:
            return None

        exchange = map_row(rows[0])
        if exchange is None:
            self.logger.error("Error converting row to Exchange", exchange_id=exchange_id)
        return exchange
