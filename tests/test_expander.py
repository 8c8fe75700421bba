from __future__ import annotations

import hashlib

import pytest

from fairplay.fairness import derive_seed, expand_dice, grid_spawn, independent_dice, permute, rejection_pair, standard_deck
from fairplay.fairness.expander import LcgStream, spawn_value
from tests.helpers import BLOCK, SECRET


def test_derive_seed_is_sha256_of_concatenation():
    seed = derive_seed(SECRET, BLOCK.hash, BLOCK.timestamp_millis, "roll-1")
    expected = hashlib.sha256(f"{SECRET}{BLOCK.hash}{BLOCK.timestamp_millis}roll-1".encode()).hexdigest()
    assert seed == expected
    assert derive_seed(SECRET, BLOCK.hash, BLOCK.timestamp_millis, "roll-2") != seed


def test_independent_dice_hash_each_index():
    seed = derive_seed(SECRET, BLOCK.hash, BLOCK.timestamp_millis, "dice")
    expected = [int(hashlib.sha256(f"{seed}{i}".encode()).hexdigest()[:8], 16) % 6 + 1 for i in range(5)]
    assert independent_dice(seed, 5) == expected
    assert all(1 <= d <= 6 for d in expected)


def test_independent_dice_rejects_negative_count():
    with pytest.raises(ValueError):
        independent_dice("ab" * 32, -1)


def test_rejection_pair_skips_bytes_at_or_above_252():
    seed = "fc0102" + "0" * 58
    # 0xfc skipped; 0x01 -> 2, 0x02 -> 3
    assert rejection_pair(seed) == (2, 3)


def test_rejection_pair_falls_back_to_rehash_when_seed_is_exhausted():
    seed = "ff" * 31 + "05"
    first, second = rejection_pair(seed)
    assert first == 0x05 % 6 + 1
    assert 1 <= second <= 6
    assert rejection_pair(seed) == (first, second)


def test_shuffle_is_deterministic_and_a_permutation():
    seed = derive_seed(SECRET, BLOCK.hash, BLOCK.timestamp_millis, "deck-shuffle")
    deck = standard_deck()
    once = permute(deck, seed)
    twice = permute(deck, seed)
    assert once == twice
    assert sorted(once) == sorted(deck)
    assert once != deck
    assert deck == standard_deck()


def test_lcg_stream_rounds_like_double_precision_clients():
    stream = LcgStream("00000001" + "0" * 56)
    assert stream.next_float() == 0.5138700781390071
    assert stream.next_index(100) == 17


def test_shuffle_matches_published_client_order():
    assert permute(standard_deck(), "c3a1f09e" + "0" * 56) == [
        "4♥", "3♦", "5♥", "7♥", "A♠", "8♥", "Q♠", "10♥", "8♣", "J♣", "10♦", "9♠", "J♦",
        "A♣", "K♠", "8♦", "Q♣", "K♦", "7♦", "10♣", "7♠", "5♦", "6♣", "4♦", "J♠", "8♠",
        "3♥", "6♠", "5♣", "9♣", "2♦", "6♥", "2♣", "K♣", "Q♥", "4♣", "K♥", "2♥", "2♠",
        "10♠", "9♦", "3♠", "4♠", "A♦", "5♠", "J♥", "9♥", "3♣", "7♣", "6♦", "A♥", "Q♦",
    ]


def test_expand_dice_doubles_play_four_times():
    assert expand_dice((4, 4)) == [4, 4, 4, 4]
    assert expand_dice((6, 2)) == [6, 2]


def test_grid_spawn_picks_an_empty_cell():
    seed = derive_seed(SECRET, BLOCK.hash, BLOCK.timestamp_millis, "spawn-1")
    cells = [(0, 1), (2, 2), (3, 0)]
    row, col, value = grid_spawn(seed, cells)
    assert (row, col) in cells
    assert value in (2, 4)
    assert value == spawn_value(seed)
