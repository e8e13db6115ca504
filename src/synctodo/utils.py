from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .filters import CollectionSummary


# PUBLIC_INTERFACE
def view_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    summary: CollectionSummary,
    tags: Sequence[str],
    version: int,
    due_labels: Optional[Mapping[Any, str]] = None,
) -> Dict[str, Any]:
    """
    Build the standard envelope for list endpoints.

    Args:
        items: The filtered view, in display order.
        summary: Counts over the whole (unfiltered) snapshot.
        tags: Every tag used in the snapshot, for building tag filters.
        version: Snapshot version the view was derived from.
        due_labels: Due-date label per task id of the view (tasks without one are omitted).

    Returns:
        Dict with keys: items, total, active, completed, tags, version, due_labels.
    """
    # Ensure items is materialized as a list (in case an iterator is passed)
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return {
        "items": materialized,
        "total": int(summary.total),
        "active": int(summary.active),
        "completed": int(summary.completed),
        "tags": list(tags),
        "version": int(version),
        "due_labels": dict(due_labels or {}),
    }
