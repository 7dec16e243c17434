import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database that backs persistent sessions.

    - The database file is located at: <database_dir>/sessions.db
    - A RuntimeError is raised if `database_dir` points to a file or cannot
      be created.
    - On the first call to `ensure_database()` for a given instance the
      `sessions` table and its expiry index are created if missing.
      Existing rows are kept so sessions survive a restart.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, database_dir: Path | str) -> None:
        db_dir = Path(database_dir).expanduser()

        # If the path exists but is not a directory, that's a configuration error.
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"SESSION_DATABASE_DIR={str(database_dir)!r} points to a file, not a directory "
                f"({db_dir}). Please set SESSION_DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = self.db_dir / "sessions.db"

        self._initialized = False
        self._lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """
        Ensure the `sessions` table exists at `self.db_path`.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            max_attempts = 3
            for attempt in range(1, max_attempts + 1):
                try:
                    async with aiosqlite.connect(self.db_path) as db:
                        await db.execute(
                            """
                            CREATE TABLE IF NOT EXISTS sessions (
                                session_id TEXT PRIMARY KEY,
                                image_data TEXT NOT NULL,
                                image_type TEXT NOT NULL,
                                image_description TEXT,
                                components TEXT NOT NULL DEFAULT '[]',
                                conversation_history TEXT NOT NULL DEFAULT '[]',
                                difficulty TEXT NOT NULL,
                                expires_at REAL NOT NULL
                            )
                            """
                        )
                        await db.execute(
                            "CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at)"
                        )
                        await db.commit()
                    break
                except FileNotFoundError:
                    # On some platforms a transient missing file error may occur; retry a few times.
                    if attempt >= max_attempts:
                        raise
                    await asyncio.sleep(0.1 * attempt)

            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
