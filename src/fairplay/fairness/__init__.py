from .cards import shoe, shuffled_deck, shuffled_shoe, standard_deck
from .entropy import ExplorerEntropySource, StaticEntropySource
from .expander import (
    derive_seed,
    expand_dice,
    grid_spawn,
    independent_dice,
    permute,
    rejection_pair,
    sha256_hex,
)
from .seeds import InMemorySessionRepository, SeedProtocol, generate_secret
from .verification import check_commitment, check_draw, verify_commitment, verify_draw, verify_history

__all__ = [
    "ExplorerEntropySource",
    "InMemorySessionRepository",
    "SeedProtocol",
    "StaticEntropySource",
    "check_commitment",
    "check_draw",
    "derive_seed",
    "expand_dice",
    "generate_secret",
    "grid_spawn",
    "independent_dice",
    "permute",
    "rejection_pair",
    "sha256_hex",
    "shoe",
    "shuffled_deck",
    "shuffled_shoe",
    "standard_deck",
    "verify_commitment",
    "verify_draw",
    "verify_history",
]
