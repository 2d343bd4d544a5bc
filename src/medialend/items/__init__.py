"""Lendable items module.

Provides functionality for:
- Book, Audio and Video items with their nominal lending terms
- Lendable / consultable toggles
- Lend and return transitions guarded by the item invariant
"""

from .models import (
    Audio,
    Book,
    ITEM_TYPES,
    ItemKind,
    KIND_POLICIES,
    KindPolicy,
    LendableItem,
    Video,
)
from .schemas import ItemCreate, ItemSummary

__all__ = [
    "Audio",
    "Book",
    "ITEM_TYPES",
    "ItemKind",
    "KIND_POLICIES",
    "KindPolicy",
    "LendableItem",
    "Video",
    "ItemCreate",
    "ItemSummary",
]
