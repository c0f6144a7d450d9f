"""
Firestore query helpers.

Wraps the keyword `filter=` API so call sites stay short and do not trigger
the positional-argument deprecation warning.
"""

from google.cloud.firestore_v1.base_query import FieldFilter


def where_filter(query, field_path: str, op_string: str, value):
    """
    Apply a single field filter to a collection or query.

    Usage:
        query = where_filter(collection, "user_id", "==", user_id)
        query = where_filter(query, "read", "==", False)
    """
    return query.where(filter=FieldFilter(field_path, op_string, value))


def chunked(items, size: int):
    """Split a list into batches (Firestore batches and `in` filters are size-limited)."""
    for start in range(0, len(items), size):
        yield items[start:start + size]
