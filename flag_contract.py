import sqlite3
import threading
import time


class FlagContract:
    """Per-wallet report counter backed by SQLite.

    Every ``flag`` call stores one report row; ``count`` is the number of rows
    for the wallet. Counts are SQLite INTEGERs (signed 64-bit), so they never
    wrap the way a single-byte counter would.
    """

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self.lock = threading.Lock()
        self.conn = sqlite3.connect(path, check_same_thread=False)
        if path != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS reports (
              wallet TEXT NOT NULL,
              reporter TEXT NOT NULL,
              ts INTEGER NOT NULL
            )
            """
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS reports_wallet ON reports(wallet)")
        self.conn.commit()

    def flag(self, wallet: str, reporter: str) -> None:
        wallet = wallet.strip()
        reporter = reporter.strip()
        if not wallet or not reporter:
            raise ValueError("Wallet and Reporter are required")
        with self.lock:
            self.conn.execute(
                "INSERT INTO reports(wallet, reporter, ts) VALUES(?, ?, ?)",
                (wallet, reporter, int(time.time())),
            )
            self.conn.commit()

    def count(self, wallet: str) -> int:
        with self.lock:
            row = self.conn.execute(
                "SELECT COUNT(*) FROM reports WHERE wallet = ?", (wallet.strip(),)
            ).fetchone()
        return int(row[0])

    def close(self) -> None:
        with self.lock:
            self.conn.close()
