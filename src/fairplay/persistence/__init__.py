from .duckdb_store import ValidationAuditStore
from .migrations import MIGRATIONS, MigrationRunner
from .sqlite_store import SessionStore

__all__ = ["MIGRATIONS", "MigrationRunner", "SessionStore", "ValidationAuditStore"]
