"""Lending registry: the aggregate coordinating every catalog."""

from .manager import LendingRegistry
from .schemas import RegistrySnapshot, RegistryStats

__all__ = [
    "LendingRegistry",
    "RegistrySnapshot",
    "RegistryStats",
]
