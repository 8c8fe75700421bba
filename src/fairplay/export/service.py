from __future__ import annotations

from pathlib import Path
from typing import Any

try:
    import duckdb
except ModuleNotFoundError:  # pragma: no cover - exercised via runtime environments without duckdb
    duckdb = None  # type: ignore[assignment]

AUDIT_DATASETS = {
    "validation_audit": "SELECT * FROM validation_audit ORDER BY audit_id",
    "flagged_submissions": (
        "SELECT game_id, game_type, player_id, risk_score, recommendation, flags_json, recorded_at "
        "FROM validation_audit WHERE recommendation IS NOT NULL AND recommendation <> 'ACCEPT' ORDER BY audit_id"
    ),
    "validation_summary": (
        "SELECT game_type, COUNT(*) AS submissions, SUM(CASE WHEN valid THEN 1 ELSE 0 END) AS valid, "
        "AVG(risk_score) AS mean_risk FROM validation_audit GROUP BY game_type ORDER BY game_type"
    ),
}


class ExportService:
    def __init__(self, audit_db: Path) -> None:
        self.audit_db = audit_db

    def export_audit_datasets(self, output_dir: Path) -> list[Path]:
        if duckdb is None:
            raise RuntimeError("duckdb is required for exports")
        output_dir.mkdir(parents=True, exist_ok=True)
        outputs: list[Path] = []
        with duckdb.connect(str(self.audit_db)) as conn:
            for name, query in AUDIT_DATASETS.items():
                outputs.extend(self._export_query(conn, query, output_dir / name))
        return outputs

    def _export_query(self, conn: Any, query: str, stem: Path) -> list[Path]:
        csv_path = stem.with_suffix(".csv")
        parquet_path = stem.with_suffix(".parquet")
        conn.execute(f"COPY ({query}) TO '{csv_path.as_posix()}' (HEADER, DELIMITER ',')")
        conn.execute(f"COPY ({query}) TO '{parquet_path.as_posix()}' (FORMAT PARQUET)")
        return [csv_path, parquet_path]
