"""Ignore handler: permanently dismiss a pending folder."""

from core.observability.logging import get_logger, with_correlation
from folder_sync.db import PendingItemStore
from folder_sync.models import PendingItem

logger = get_logger(__name__)


def ignore_item(store: PendingItemStore, item_id: int) -> PendingItem:
    """Mark a pending item as ignored.

    Creates no domain records. ``ignored`` is terminal and the folder is
    never offered again, even if it is still present remotely.

    Raises:
        PendingItemNotFoundError: If no item has this id
        ConflictError: If the item is not pending
    """
    with with_correlation(pending_item_id=item_id):
        item = store.mark_ignored(item_id)
        logger.info("Pending item ignored", extra_fields={"folder_name": item.folder_name})
        return item
