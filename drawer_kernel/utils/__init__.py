"""Utility functions for the drawer kernel."""

from drawer_kernel.utils.hashing import canonicalize_json, hash_payload, hash_text

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_text",
]
