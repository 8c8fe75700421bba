from __future__ import annotations

from fairplay.contracts import BlockRecord
from fairplay.fairness import SeedProtocol, StaticEntropySource

SECRET = "5f1c9a0b7e3d2c4f6a8b0d1e3f5a7c9e1b3d5f7a9c0e2f4a6b8d0c2e4f6a8b0c"

BLOCK = BlockRecord(
    hash="7d3e1f4a9b2c8d6e0f1a3b5c7d9e2f4a6b8c0d1e3f5a7b9c2d4e6f8a0b1c3d5e",
    height=1_204_518,
    timestamp_millis=1_717_000_123_456,
    tx_hash="a1b2c3d4e5f60718293a4b5c6d7e8f90a1b2c3d4e5f60718293a4b5c6d7e8f90",
    tx_index=2,
    tx_count=5,
)

NEXT_BLOCK = BlockRecord(
    hash="0c4e8a2f6b1d5e9c3a7f0b4d8e2a6c1f5b9d3e7a0c4f8b2d6e1a5c9f3b7d0e4a",
    height=1_204_519,
    timestamp_millis=1_717_000_243_001,
)


def static_entropy() -> StaticEntropySource:
    return StaticEntropySource([BLOCK, NEXT_BLOCK])


def make_protocol(secret: str = SECRET, repository=None) -> SeedProtocol:
    return SeedProtocol(static_entropy(), repository, secret_factory=lambda: secret)


def started(protocol: SeedProtocol | None = None):
    protocol = protocol or make_protocol()
    start = protocol.start_session()
    return protocol, start.session_id
