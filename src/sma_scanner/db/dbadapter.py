import asyncio
import time
from typing import Optional

import aiosqlite

from sma_scanner.core.errors import ScanNotReadyError
from sma_scanner.core.models import ScanResult

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS sma_scan (
id INTEGER PRIMARY KEY CHECK (id = 1),
as_of TEXT,
payload TEXT NOT NULL,
ts INTEGER
);
"""


class ScanStore:
    """Holds the most recent successful scan. Only the build job writes to it."""

    def __init__(self, db_path: str = "scanner.db") -> None:
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None
        self._conn_lock = asyncio.Lock()

    async def init(self) -> None:
        """Open the connection and ensure the schema exists."""
        async with self._conn_lock:
            if self._conn:
                return
            self._conn = await aiosqlite.connect(self.db_path)
            await self._conn.execute(CREATE_TABLE_SQL)
            await self._conn.commit()

    async def close(self) -> None:
        async with self._conn_lock:
            if self._conn:
                await self._conn.close()
                self._conn = None

    async def save_scan(self, result: ScanResult) -> None:
        """Replace the stored scan with `result`."""
        if not self._conn:
            raise RuntimeError("ScanStore not initialized. Call .init() before use.")

        payload = result.model_dump_json(by_alias=True)
        await self._conn.execute(
            "REPLACE INTO sma_scan (id, as_of, payload, ts) VALUES (1, ?, ?, ?)",
            (result.as_of, payload, int(time.time())),
        )
        await self._conn.commit()

    async def load_latest(self) -> ScanResult:
        """Return the stored scan; ScanNotReadyError if the build job never ran."""
        if not self._conn:
            raise RuntimeError("ScanStore not initialized. Call .init() before use.")

        async with self._conn.execute("SELECT payload FROM sma_scan WHERE id = 1") as cur:
            row = await cur.fetchone()
        if not row:
            raise ScanNotReadyError()
        return ScanResult.model_validate_json(row[0])


# helper to create and init a ScanStore instance
async def create_and_init(db_path: str = "scanner.db") -> ScanStore:
    store = ScanStore(db_path=db_path)
    await store.init()
    return store
