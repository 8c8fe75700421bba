from __future__ import annotations

import sqlite3

MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS sessions (
            session_id TEXT PRIMARY KEY,
            secret_hash TEXT NOT NULL,
            secret TEXT NOT NULL,
            block_json TEXT NOT NULL,
            created_at TEXT,
            ended_at TEXT
        );

        CREATE TABLE IF NOT EXISTS session_draws (
            session_id TEXT NOT NULL,
            sequence INTEGER NOT NULL,
            purpose_label TEXT NOT NULL,
            block_json TEXT NOT NULL,
            seed TEXT NOT NULL,
            PRIMARY KEY (session_id, sequence),
            UNIQUE (session_id, purpose_label),
            FOREIGN KEY (session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS game_records (
            game_id TEXT PRIMARY KEY,
            game_type TEXT NOT NULL,
            session_id TEXT,
            action_history_json TEXT NOT NULL,
            random_history_json TEXT NOT NULL,
            claimed_score REAL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (session_id) REFERENCES sessions(session_id)
        );
        """,
    ),
    (
        2,
        """
        ALTER TABLE game_records ADD COLUMN player_id TEXT NOT NULL DEFAULT 'anonymous';

        CREATE INDEX IF NOT EXISTS idx_game_records_player ON game_records(player_id, created_at);
        """,
    ),
]


class MigrationRunner:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def apply(self) -> None:
        self.conn.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT DEFAULT CURRENT_TIMESTAMP)")
        applied = {
            row[0]
            for row in self.conn.execute("SELECT version FROM schema_migrations").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            self.conn.executescript(sql)
            self.conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (version,))
        self.conn.commit()

    def applied_versions(self) -> list[int]:
        return [row[0] for row in self.conn.execute("SELECT version FROM schema_migrations ORDER BY version").fetchall()]
