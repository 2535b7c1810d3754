"""
Policy registry, maps a policy identifier to its constructor.
"""

from typing import Dict, List, Type

from errors import UnknownPolicyError
from policies import EvictionPolicy, FifoPolicy, LfuPolicy, LruPolicy

# ── Registry ────────────────────────────────────────────────────────
POLICY_REGISTRY: Dict[str, Type[EvictionPolicy]] = {
    "FIFO": FifoPolicy,
    "LRU": LruPolicy,
    "LFU": LfuPolicy,
}

POLICY_DESCRIPTIONS: Dict[str, str] = {
    "FIFO": "First In, First Out",
    "LRU": "Least Recently Used",
    "LFU": "Least Frequently Used",
}


def normalize_policy_id(identifier) -> str:
    """
    Canonical registry key for an identifier ('lru ' -> 'LRU').

    Raises:
        UnknownPolicyError: If the identifier is not registered.
    """
    key = identifier.strip().upper() if isinstance(identifier, str) else None
    if key not in POLICY_REGISTRY:
        raise UnknownPolicyError(identifier, POLICY_REGISTRY.keys())
    return key


def create_policy(identifier: str, capacity: int) -> EvictionPolicy:
    """
    Instantiate a replacement policy by name.

    Args:
        identifier: One of 'FIFO', 'LRU', 'LFU' (case-insensitive).
        capacity: Number of references the policy may hold.

    Returns:
        A fresh EvictionPolicy instance.

    Raises:
        UnknownPolicyError: If the identifier is not registered.
        ConfigurationError: If the capacity is not a positive integer.
    """
    return POLICY_REGISTRY[normalize_policy_id(identifier)](capacity)


def available_policies() -> List[str]:
    return list(POLICY_REGISTRY)
