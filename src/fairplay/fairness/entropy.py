from __future__ import annotations

import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any, Callable, Sequence

from fairplay.contracts import BlockRecord, EntropySource
from fairplay.core import EntropySourceUnavailable

logger = logging.getLogger(__name__)

MIN_TX_COUNT = 3
RECENT_BLOCK_WINDOW = 10


class StaticEntropySource(EntropySource):
    """Serves fixed block records; used for offline verification and tests."""

    def __init__(self, records: Sequence[BlockRecord]) -> None:
        if not records:
            raise ValueError("static entropy source needs at least one record")
        self._records = list(records)
        self._cursor = 0

    def fetch(self, block_identifier: str | None = None) -> BlockRecord:
        if block_identifier is not None:
            for record in self._records:
                if block_identifier in {record.hash, str(record.height)}:
                    return record
            raise EntropySourceUnavailable(f"unknown block {block_identifier}")
        record = self._records[min(self._cursor, len(self._records) - 1)]
        self._cursor += 1
        return record


def select_transaction(transaction_ids: Sequence[str], timestamp_millis: int) -> tuple[str | None, int]:
    """Picks one transaction by ``timestamp mod count``; reproducible by any verifier."""
    if not transaction_ids:
        return None, 0
    index = timestamp_millis % len(transaction_ids)
    return transaction_ids[index], index


class ExplorerEntropySource(EntropySource):
    """Block records from an Ergo-explorer style JSON API.

    Each call makes at most a couple of HTTP requests bounded by ``timeout``;
    any failure surfaces as ``EntropySourceUnavailable`` with no retry.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._open = opener or urllib.request.urlopen

    def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            with self._open(url, timeout=self.timeout) as response:
                return json.loads(response.read().decode("utf-8"))
        except (urllib.error.URLError, socket.timeout, TimeoutError, OSError, ValueError) as exc:
            logger.warning("entropy fetch failed url=%s error=%s", url, exc)
            raise EntropySourceUnavailable(f"block explorer unavailable: {exc}") from exc

    def _record_for(self, block_id: str) -> BlockRecord:
        data = self._get_json(f"/blocks/{block_id}")
        try:
            block = data["block"]
            header = block["header"]
            tx_ids = [tx["id"] for tx in block.get("blockTransactions") or []]
            timestamp = int(header["timestamp"])
            tx_hash, tx_index = select_transaction(tx_ids, timestamp)
            return BlockRecord(
                hash=str(header["id"]),
                height=int(header["height"]),
                timestamp_millis=timestamp,
                tx_hash=tx_hash,
                tx_index=tx_index,
                tx_count=len(tx_ids),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise EntropySourceUnavailable(f"malformed block payload for {block_id}: {exc}") from exc

    def fetch(self, block_identifier: str | None = None) -> BlockRecord:
        if block_identifier is not None:
            if block_identifier.isdigit():
                ids = self._get_json(f"/blocks/at/{block_identifier}")
                if not ids:
                    raise EntropySourceUnavailable(f"no block at height {block_identifier}")
                return self._record_for(str(ids[0]))
            return self._record_for(block_identifier)

        listing = self._get_json(f"/blocks?limit={RECENT_BLOCK_WINDOW}")
        items = listing.get("items") if isinstance(listing, dict) else None
        if not items:
            raise EntropySourceUnavailable("block explorer returned no recent blocks")
        chosen = next((b for b in items if int(b.get("transactionsCount", 0)) >= MIN_TX_COUNT), items[0])
        return self._record_for(str(chosen["id"]))
