from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass


@dataclass(slots=True)
class _Gate:
    lock: asyncio.Lock
    refcount: int


class SingleFlight:
    """Per-key asyncio locks, dropped once nobody holds or waits on them.

    The gate map is only touched between await points, so the event loop
    already serializes access to it.
    """

    def __init__(self) -> None:
        self._gates: dict[str, _Gate] = {}

    def __len__(self) -> int:
        return len(self._gates)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        gate = self._gates.get(key)
        if gate is None:
            gate = _Gate(lock=asyncio.Lock(), refcount=0)
            self._gates[key] = gate
        gate.refcount += 1
        try:
            async with gate.lock:
                yield
        finally:
            gate.refcount -= 1
            if gate.refcount <= 0:
                self._gates.pop(key, None)
