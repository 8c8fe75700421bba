from .config import FairplayConfig, RuntimePaths, load_config
from .errors import (
    CommitmentMismatch,
    EntropySourceUnavailable,
    FairnessError,
    IllegalAction,
    SeedMismatch,
    StructuralError,
    build_forensic_artifact,
    persist_forensic_artifact,
)
from .ids import IdSequence, make_game_id, make_id, now_millis, now_utc
from .logs import configure_logging

__all__ = [
    "CommitmentMismatch",
    "EntropySourceUnavailable",
    "FairnessError",
    "FairplayConfig",
    "IdSequence",
    "IllegalAction",
    "RuntimePaths",
    "SeedMismatch",
    "StructuralError",
    "build_forensic_artifact",
    "configure_logging",
    "load_config",
    "make_game_id",
    "make_id",
    "now_millis",
    "now_utc",
    "persist_forensic_artifact",
]
