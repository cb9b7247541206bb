from __future__ import annotations


class DuplicateKeyError(ValueError):
    """A unique constraint rejected an insert."""
