from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Sequence

from fairplay.contracts import ActionRequest, ActionType, BlockRecord, ValidationLevel
from fairplay.core import configure_logging, make_id
from fairplay.fairness import StaticEntropySource
from fairplay.fairness.seeds import FRESH_BLOCK
from fairplay.runtime import FairplayRuntime


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _static_entropy(path: Path | None) -> StaticEntropySource | None:
    if path is None:
        return None
    raw = _read_json(path)
    records = raw if isinstance(raw, list) else [raw]
    return StaticEntropySource([BlockRecord.from_dict(r) for r in records])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fairplay", description="Provably fair seeds and score replay validation")
    parser.add_argument("--root", type=Path, default=Path.cwd(), help="runtime root directory")
    parser.add_argument("--log-level", default=None, help="logging level for the fairplay logger (overrides log_level in fairplay.json)")
    parser.add_argument(
        "--blocks",
        type=Path,
        default=None,
        help="JSON file of block records to use instead of the block explorer",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("start-session", help="commit to a fresh secret against the latest block")

    derive = sub.add_parser("derive", help="derive the seed for one purpose label")
    derive.add_argument("session_id")
    derive.add_argument("purpose_label")
    derive.add_argument("--fresh-block", action="store_true", help="fetch a new block instead of the session block")

    end = sub.add_parser("end-session", help="end a session and reveal its secret")
    end.add_argument("session_id")

    verify = sub.add_parser("verify-draw", help="recompute a recorded draw (or a whole history) from a reveal")
    verify.add_argument("path", type=Path, help="JSON with secret, block and draw or draws (plus secret_hash)")

    validate = sub.add_parser("validate", help="replay and score a submission")
    validate.add_argument("path", type=Path, help="submission JSON")
    validate.add_argument("--level", choices=[lvl.value for lvl in ValidationLevel], default=None)
    validate.add_argument("--player", default="anonymous")

    stats = sub.add_parser("stats", help="validation audit statistics")
    stats.add_argument("--flagged", action="store_true", help="list flagged submissions instead")
    stats.add_argument("--limit", type=int, default=50)

    sub.add_parser("export", help="export the validation audit to CSV and Parquet")
    return parser


def _request(args: argparse.Namespace) -> ActionRequest:
    if args.command == "start-session":
        return ActionRequest(make_id("req"), ActionType.START_SESSION, {})
    if args.command == "derive":
        payload = {"session_id": args.session_id, "purpose_label": args.purpose_label}
        if args.fresh_block:
            payload["block"] = FRESH_BLOCK
        return ActionRequest(make_id("req"), ActionType.DERIVE_SEED, payload)
    if args.command == "end-session":
        return ActionRequest(make_id("req"), ActionType.END_SESSION, {"session_id": args.session_id})
    if args.command == "verify-draw":
        return ActionRequest(make_id("req"), ActionType.VERIFY_DRAW, _read_json(args.path))
    if args.command == "validate":
        payload: dict[str, Any] = {"submission": _read_json(args.path)}
        if args.level:
            payload["level"] = args.level
        return ActionRequest(make_id("req"), ActionType.SUBMIT_SCORE, payload, args.player)
    if args.command == "stats":
        if args.flagged:
            return ActionRequest(make_id("req"), ActionType.GET_FLAGGED_SUBMISSIONS, {"limit": args.limit})
        return ActionRequest(make_id("req"), ActionType.GET_VALIDATION_STATS, {})
    return ActionRequest(make_id("req"), ActionType.EXPORT_AUDIT, {})


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    runtime = FairplayRuntime(root=args.root, entropy=_static_entropy(args.blocks))
    configure_logging(args.log_level or runtime.config.log_level)

    result = runtime.handle_action(_request(args))
    print(result.message)
    if result.data:
        print(json.dumps(result.data, indent=2, default=str))
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
