from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable

from fairplay.contracts import (
    BlockRecord,
    Commitment,
    DrawRecord,
    EntropySource,
    Reveal,
    SessionRecord,
    SessionRepository,
    SessionStart,
)
from fairplay.core import (
    CommitmentMismatch,
    EntropySourceUnavailable,
    StructuralError,
    build_forensic_artifact,
    make_id,
    now_utc,
)
from fairplay.fairness.expander import derive_seed, sha256_hex

logger = logging.getLogger(__name__)

SECRET_BYTES = 32
FRESH_BLOCK = "fresh"


def generate_secret() -> str:
    return secrets.token_hex(SECRET_BYTES)


class InMemorySessionRepository(SessionRepository):
    def __init__(self) -> None:
        self._sessions: dict[str, SessionRecord] = {}

    def save_session(self, session: SessionRecord) -> None:
        self._sessions[session.session_id] = replace(session, purpose_log=list(session.purpose_log))

    def load_session(self, session_id: str) -> SessionRecord | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return replace(session, purpose_log=list(session.purpose_log))

    def append_draw(self, session_id: str, draw: DrawRecord) -> None:
        self._sessions[session_id].purpose_log.append(draw)

    def mark_ended(self, session_id: str, ended_at: datetime) -> None:
        self._sessions[session_id].ended_at = ended_at


class SeedProtocol:
    """Commit-reveal session manager.

    The secret is committed by hash at ``start_session`` and only leaves the
    protocol through ``end_session``. ``derive`` calls for one session are
    serialized so a reused purpose label is always detected.
    """

    def __init__(
        self,
        entropy: EntropySource,
        repository: SessionRepository | None = None,
        secret_factory: Callable[[], str] = generate_secret,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.entropy = entropy
        self.repository = repository or InMemorySessionRepository()
        self._secret_factory = secret_factory
        self._clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(session_id, threading.Lock())

    def _fetch_block(self, block_identifier: str | None = None) -> BlockRecord:
        try:
            return self.entropy.fetch(block_identifier)
        except EntropySourceUnavailable:
            raise
        except Exception as exc:
            raise EntropySourceUnavailable(f"entropy source failed: {exc}") from exc

    def _require(self, session_id: str) -> SessionRecord:
        session = self.repository.load_session(session_id)
        if session is None:
            raise StructuralError(f"unknown session {session_id}")
        return session

    def start_session(self) -> SessionStart:
        block = self._fetch_block()
        secret = self._secret_factory()
        session = SessionRecord(
            session_id=make_id("sess"),
            secret_hash=sha256_hex(secret),
            secret=secret,
            block=block,
            created_at=self._clock(),
        )
        self.repository.save_session(session)
        logger.info("session started session_id=%s block_height=%s", session.session_id, block.height)
        return SessionStart(session_id=session.session_id, secret_hash=session.secret_hash, block=block)

    def commitment(self, session_id: str) -> Commitment:
        session = self._require(session_id)
        return Commitment(session_id=session.session_id, secret_hash=session.secret_hash)

    def derive(self, session_id: str, purpose_label: str, block_record: BlockRecord | str | None = None) -> str:
        return self.derive_record(session_id, purpose_label, block_record).seed

    def derive_record(
        self, session_id: str, purpose_label: str, block_record: BlockRecord | str | None = None
    ) -> DrawRecord:
        """Like ``derive`` but also reports which block the seed came from."""
        if not purpose_label:
            raise StructuralError("purpose label must be non-empty")
        with self._lock_for(session_id):
            session = self._require(session_id)
            if session.ended:
                raise StructuralError(f"session {session_id} has ended")
            if purpose_label in session.used_labels():
                raise StructuralError(f"purpose label {purpose_label!r} already used in session {session_id}")

            if block_record is None:
                block = session.block
            elif block_record == FRESH_BLOCK:
                block = self._fetch_block()
            elif isinstance(block_record, BlockRecord):
                block = block_record
            else:
                raise StructuralError(f"unsupported block reference {block_record!r}")
            if block.height < session.block.height:
                raise StructuralError(f"block {block.height} predates the session block {session.block.height}")

            seed = derive_seed(session.secret, block.hash, block.timestamp_millis, purpose_label)
            record = DrawRecord(purpose_label=purpose_label, block=block, seed=seed)
            self.repository.append_draw(session_id, record)
            logger.debug("seed derived session_id=%s label=%s block=%s seed=%s", session_id, purpose_label, block.hash, seed)
            return record

    def end_session(self, session_id: str) -> Reveal:
        with self._lock_for(session_id):
            session = self._require(session_id)
            if not session.ended:
                session.ended_at = self._clock()
                self.repository.mark_ended(session_id, session.ended_at)
                logger.info("session ended session_id=%s draws=%d", session_id, len(session.purpose_log))

        if sha256_hex(session.secret) != session.secret_hash:
            artifact = build_forensic_artifact(
                engine_scope="seed_protocol",
                error_code="COMMITMENT_MISMATCH",
                message="revealed secret does not hash to the published commitment",
                state_snapshot={"secret_hash": session.secret_hash, "draws": len(session.purpose_log)},
                context={"block": session.block.to_dict()},
                identifiers={"session_id": session_id},
                causal_fragment=["end_session", "verify_commitment"],
            )
            logger.error("commitment mismatch session_id=%s", session_id)
            raise CommitmentMismatch(f"session {session_id} secret does not match its commitment", artifact)

        return Reveal(
            session_id=session_id,
            secret=session.secret,
            secret_hash=session.secret_hash,
            block=session.block,
            purpose_log=tuple(session.purpose_log),
        )
