"""Cache-layer error types.

Storage faults never leave the persistent tier; these exist so storage media
can signal capacity problems in a way the tier can recognise.
"""

from __future__ import annotations


class StorageQuotaExceededError(OSError):
    """Raised by a storage medium when a write would exceed its capacity."""

    def __init__(self, *, needed_bytes: int, capacity_bytes: int) -> None:
        super().__init__(
            f"storage quota exceeded: needed={needed_bytes} capacity={capacity_bytes}"
        )
        self.needed_bytes = needed_bytes
        self.capacity_bytes = capacity_bytes
