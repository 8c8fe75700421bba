from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from fairplay.contracts import ValidationError, ValidationIssue, ValidationLevel

ENV_PREFIX = "FAIRPLAY_"


@dataclass(frozen=True, slots=True)
class FairplayConfig:
    entropy_timeout_seconds: float = 5.0
    explorer_base_url: str = "https://api.ergoplatform.com/api/v1"
    chess_score_tolerance: float = 0.10
    rate_limit_max_submissions: int = 10
    rate_limit_window_seconds: float = 60.0
    fraud_review_threshold: int = 50
    fraud_reject_threshold: int = 75
    default_validation_level: str = ValidationLevel.FULL.value
    log_level: str = "INFO"


def _coerce(name: str, raw: Any, target: Any) -> Any:
    try:
        if isinstance(target, bool):
            return str(raw).lower() in {"1", "true", "yes"}
        if isinstance(target, int):
            return int(raw)
        if isinstance(target, float):
            return float(raw)
        return str(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            [
                ValidationIssue(
                    code="CONFIG_TYPE_INVALID",
                    severity="blocking",
                    field_path=name,
                    entity_id="config",
                    message=f"cannot coerce {raw!r}: {exc}",
                )
            ]
        ) from exc


def _validate(config: FairplayConfig) -> FairplayConfig:
    issues: list[ValidationIssue] = []
    if config.entropy_timeout_seconds <= 0:
        issues.append(
            ValidationIssue("CONFIG_RANGE", "blocking", "entropy_timeout_seconds", "config", "timeout must be positive")
        )
    if not 0 <= config.chess_score_tolerance < 1:
        issues.append(
            ValidationIssue("CONFIG_RANGE", "blocking", "chess_score_tolerance", "config", "tolerance must be in [0, 1)")
        )
    if config.rate_limit_max_submissions < 1:
        issues.append(
            ValidationIssue("CONFIG_RANGE", "blocking", "rate_limit_max_submissions", "config", "limit must be >= 1")
        )
    if config.fraud_review_threshold > config.fraud_reject_threshold:
        issues.append(
            ValidationIssue(
                "CONFIG_RANGE", "blocking", "fraud_review_threshold", "config", "review threshold exceeds reject threshold"
            )
        )
    if config.default_validation_level not in {lvl.value for lvl in ValidationLevel}:
        issues.append(
            ValidationIssue(
                "CONFIG_RANGE", "blocking", "default_validation_level", "config", "unknown validation level"
            )
        )
    if not isinstance(logging.getLevelName(config.log_level.upper()), int):
        issues.append(ValidationIssue("CONFIG_RANGE", "blocking", "log_level", "config", "unknown log level"))
    if issues:
        raise ValidationError(issues)
    return config


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> FairplayConfig:
    """JSON file first, then ``FAIRPLAY_*`` environment overrides."""
    config = FairplayConfig()
    defaults = {f.name: getattr(config, f.name) for f in fields(FairplayConfig)}
    overrides: dict[str, Any] = {}

    if path is not None and path.exists():
        data = json.loads(path.read_text(encoding="utf-8"))
        unknown = sorted(set(data) - set(defaults))
        if unknown:
            raise ValidationError(
                [
                    ValidationIssue("CONFIG_UNKNOWN_KEY", "blocking", key, "config", "unknown configuration key")
                    for key in unknown
                ]
            )
        for key, value in data.items():
            overrides[key] = _coerce(key, value, defaults[key])

    env = os.environ if environ is None else environ
    for name, default in defaults.items():
        raw = env.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None:
            overrides[name] = _coerce(name, raw, default)

    return _validate(replace(config, **overrides))


class RuntimePaths:
    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def sqlite_path(self) -> Path:
        return self.root / "data" / "sessions.sqlite3"

    @property
    def duckdb_path(self) -> Path:
        return self.root / "data" / "audit.duckdb"

    @property
    def export_dir(self) -> Path:
        return self.root / "exports"

    @property
    def forensic_dir(self) -> Path:
        return self.root / "forensics"

    @property
    def config_path(self) -> Path:
        return self.root / "fairplay.json"
