"""
Change-feed services.

- outbox_service: record row changes in the same transaction as the write
- outbox_processor: publish pending changes to the session channels
"""

from .outbox_service import (
    record_delete,
    record_insert,
    record_update,
    write_outbox_event,
)
from .outbox_processor import (
    OutboxProcessor,
    get_outbox_processor,
    start_outbox_processor,
    stop_outbox_processor,
)

__all__ = [
    "record_delete",
    "record_insert",
    "record_update",
    "write_outbox_event",
    "OutboxProcessor",
    "get_outbox_processor",
    "start_outbox_processor",
    "stop_outbox_processor",
]
