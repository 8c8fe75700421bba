from __future__ import annotations

import threading
from dataclasses import replace

import pytest

from fairplay.contracts import DrawKind, Err, ErrorKind, Ok, RandomDraw
from fairplay.core import CommitmentMismatch, EntropySourceUnavailable, StructuralError
from fairplay.fairness import (
    SeedProtocol,
    StaticEntropySource,
    derive_seed,
    rejection_pair,
    sha256_hex,
    verify_commitment,
    verify_draw,
    verify_history,
)
from fairplay.fairness.seeds import FRESH_BLOCK
from tests.helpers import BLOCK, NEXT_BLOCK, SECRET, make_protocol, started


def test_start_session_commits_to_secret_hash():
    protocol = make_protocol()
    start = protocol.start_session()
    assert start.secret_hash == sha256_hex(SECRET)
    assert start.block == BLOCK
    assert protocol.commitment(start.session_id).secret_hash == start.secret_hash


def test_derive_uses_session_block_and_label():
    protocol, session_id = started()
    seed = protocol.derive(session_id, "roll-1")
    assert seed == derive_seed(SECRET, BLOCK.hash, BLOCK.timestamp_millis, "roll-1")


def test_derive_with_fresh_block_fetches_next_record():
    protocol, session_id = started()
    seed = protocol.derive(session_id, "roll-1", FRESH_BLOCK)
    assert seed == derive_seed(SECRET, NEXT_BLOCK.hash, NEXT_BLOCK.timestamp_millis, "roll-1")
    reveal = protocol.end_session(session_id)
    assert reveal.purpose_log[0].block == NEXT_BLOCK


def test_reused_purpose_label_is_rejected():
    protocol, session_id = started()
    protocol.derive(session_id, "deck-shuffle")
    with pytest.raises(StructuralError):
        protocol.derive(session_id, "deck-shuffle")


def test_empty_label_and_unknown_session_are_rejected():
    protocol, session_id = started()
    with pytest.raises(StructuralError):
        protocol.derive(session_id, "")
    with pytest.raises(StructuralError):
        protocol.derive("sess_missing", "roll-1")


def test_end_session_reveals_secret_and_blocks_further_draws():
    protocol, session_id = started()
    protocol.derive(session_id, "roll-1")
    protocol.derive(session_id, "roll-2")
    reveal = protocol.end_session(session_id)
    assert reveal.secret == SECRET
    assert verify_commitment(reveal.secret, reveal.secret_hash)
    assert [d.purpose_label for d in reveal.purpose_log] == ["roll-1", "roll-2"]
    with pytest.raises(StructuralError):
        protocol.derive(session_id, "roll-3")
    assert protocol.end_session(session_id).secret == SECRET


def test_flipping_one_character_breaks_commitment():
    tampered = ("0" if SECRET[0] != "0" else "1") + SECRET[1:]
    assert not verify_commitment(tampered, sha256_hex(SECRET))


def test_commitment_mismatch_at_end_carries_forensic_artifact():
    protocol, session_id = started()
    session = protocol.repository.load_session(session_id)
    session.secret = "not-the-committed-secret"
    protocol.repository.save_session(session)
    with pytest.raises(CommitmentMismatch) as excinfo:
        protocol.end_session(session_id)
    assert excinfo.value.artifact is not None
    assert excinfo.value.artifact.error_code == "COMMITMENT_MISMATCH"


def test_entropy_failure_is_surfaced():
    class Broken:
        def fetch(self, block_identifier=None):
            raise ConnectionError("explorer down")

    protocol = SeedProtocol(Broken())
    with pytest.raises(EntropySourceUnavailable):
        protocol.start_session()


def test_unknown_static_block_is_unavailable():
    with pytest.raises(EntropySourceUnavailable):
        StaticEntropySource([BLOCK]).fetch("deadbeef")


def test_concurrent_derives_never_share_a_label():
    protocol, session_id = started()
    outcomes: list[str] = []
    lock = threading.Lock()

    def worker():
        try:
            protocol.derive(session_id, "shared-label")
            result = "ok"
        except StructuralError:
            result = "reused"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(outcomes) == ["ok"] + ["reused"] * 7


def test_verify_draw_and_history():
    protocol, session_id = started()
    seed = protocol.derive(session_id, "roll-1")
    reveal = protocol.end_session(session_id)
    draw = RandomDraw("roll-1", DrawKind.PAIR, rejection_pair(seed), seed)
    assert verify_draw(reveal.secret, reveal.block, draw) == Ok(seed)
    assert verify_history(reveal.secret, reveal.secret_hash, reveal.block, [draw]) == Ok([seed])

    a, b = draw.output
    forged = RandomDraw("roll-1", DrawKind.PAIR, (a % 6 + 1, b), None)
    result = verify_draw(reveal.secret, reveal.block, forged)
    assert isinstance(result, Err)
    assert result.kind is ErrorKind.SEED_MISMATCH


def test_verify_history_rejects_wrong_secret_and_duplicates():
    protocol, session_id = started()
    seed = protocol.derive(session_id, "roll-1")
    reveal = protocol.end_session(session_id)
    draw = RandomDraw("roll-1", DrawKind.PAIR, rejection_pair(seed), seed)

    wrong = verify_history("other", reveal.secret_hash, reveal.block, [draw])
    assert isinstance(wrong, Err) and wrong.kind is ErrorKind.COMMITMENT_MISMATCH

    duplicated = verify_history(reveal.secret, reveal.secret_hash, reveal.block, [draw, draw])
    assert isinstance(duplicated, Err) and duplicated.kind is ErrorKind.STRUCTURAL_ERROR


def test_draw_from_a_fresh_block_verifies_against_its_own_block():
    protocol, session_id = started()
    drawn = protocol.derive_record(session_id, "deck-shuffle", FRESH_BLOCK)
    assert drawn.block == NEXT_BLOCK
    reveal = protocol.end_session(session_id)

    draw = RandomDraw("deck-shuffle", DrawKind.PAIR, rejection_pair(drawn.seed), drawn.seed, drawn.block)
    assert verify_history(reveal.secret, reveal.secret_hash, reveal.block, [draw]) == Ok([drawn.seed])
    assert RandomDraw.from_dict(draw.to_dict()) == draw

    unlabelled = replace(draw, block=None)
    result = verify_draw(reveal.secret, reveal.block, unlabelled)
    assert isinstance(result, Err) and result.kind is ErrorKind.SEED_MISMATCH


def test_blocks_older_than_the_session_block_are_refused():
    older = replace(BLOCK, hash="1" * 64, height=BLOCK.height - 10)
    protocol, session_id = started()
    with pytest.raises(StructuralError):
        protocol.derive(session_id, "roll-1", older)

    seed = derive_seed(SECRET, older.hash, older.timestamp_millis, "roll-1")
    draw = RandomDraw("roll-1", DrawKind.PAIR, rejection_pair(seed), seed, older)
    result = verify_draw(SECRET, BLOCK, draw)
    assert isinstance(result, Err) and result.kind is ErrorKind.STRUCTURAL_ERROR
