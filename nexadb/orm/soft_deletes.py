"""
NexaDB Soft Deletes
===================
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SoftDeletes:
    """
    Soft delete capability for a model.

    Deleting stamps the column instead of removing the row, and model
    queries hide stamped rows unless with_trashed() or only_trashed()
    is used.

    Example:
        class Post(Model):
            __soft_deletes__ = SoftDeletes()

        class Archive(Model):
            __soft_deletes__ = SoftDeletes(column="archived_at")
    """

    column: str = "deleted_at"
