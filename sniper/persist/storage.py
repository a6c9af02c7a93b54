"""Trade journal persisted in SQLite."""

from datetime import datetime
from typing import Any

import aiosqlite
import structlog

from ..core.interfaces import TradeJournal

logger = structlog.get_logger(__name__)


class SQLiteStorage(TradeJournal):
    """SQLite-backed trade journal."""

    def __init__(self, db_path: str = "sniper.sqlite") -> None:
        """Initialize SQLite storage.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        logger.info("SQLite storage initialized", db_path=db_path)

    @classmethod
    def from_url(cls, database_url: str) -> "SQLiteStorage":
        """Build from a ``sqlite+aiosqlite:///path`` style URL."""
        prefix, sep, path = database_url.partition(":///")
        if not sep or not prefix.startswith("sqlite"):
            raise ValueError(f"Unsupported database URL: {database_url}")
        return cls(path)

    async def initialize(self) -> None:
        """Initialize database tables."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    token_mint TEXT NOT NULL,
                    side TEXT NOT NULL,
                    tx_id TEXT NOT NULL,
                    sol_amount REAL,
                    token_amount REAL,
                    price REAL,
                    price_impact_pct REAL,
                    reason TEXT,
                    backend TEXT,
                    ts REAL NOT NULL
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_trades_token_mint
                ON trades(token_mint)
            """)

            await db.commit()

        logger.info("Database tables initialized")

    async def record_trade(
        self,
        token_mint: str,
        side: str,
        tx_id: str,
        sol_amount: float | None = None,
        token_amount: float | None = None,
        price: float | None = None,
        price_impact_pct: float | None = None,
        reason: str | None = None,
        backend: str | None = None,
    ) -> int:
        """Record a trade.

        Args:
            token_mint: Token mint address
            side: Trade side ('buy' or 'sell')
            tx_id: Transaction or bundle id
            sol_amount: SOL spent (buys) or received (sells)
            token_amount: Token base units bought or sold
            price: Price in SOL per token
            price_impact_pct: Assessed price impact, when known
            reason: Exit reason for sells
            backend: Execution backend

        Returns:
            Trade ID
        """
        ts = datetime.now().timestamp()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO trades (
                    token_mint, side, tx_id, sol_amount, token_amount, price,
                    price_impact_pct, reason, backend, ts
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    token_mint,
                    side,
                    tx_id,
                    sol_amount,
                    token_amount,
                    price,
                    price_impact_pct,
                    reason,
                    backend,
                    ts,
                ),
            )

            trade_id = cursor.lastrowid
            await db.commit()

        logger.debug(
            "Trade recorded",
            trade_id=trade_id,
            token_mint=token_mint,
            side=side,
            tx_id=tx_id,
            reason=reason,
        )
        return trade_id

    async def load_trades(self, token_mint: str | None = None) -> list[dict[str, Any]]:
        """Load recorded trades, oldest first."""
        query = "SELECT * FROM trades"
        params: tuple = ()
        if token_mint is not None:
            query += " WHERE token_mint = ?"
            params = (token_mint,)
        query += " ORDER BY id"

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()

        return [dict(row) for row in rows]

    async def close(self) -> None:
        logger.info("Storage closed")

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
