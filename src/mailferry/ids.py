"""Id generators for rules and attachment actions."""

from __future__ import annotations

import itertools
import uuid
from typing import Protocol


class IdGenerator(Protocol):
    def __call__(self) -> str: ...


class UuidIdGenerator:
    """Random UUID4 ids."""

    def __call__(self) -> str:
        return uuid.uuid4().hex


class SequentialIdGenerator:
    """Predictable ids: prefix followed by an increasing counter."""

    def __init__(self, prefix: str = "id", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}{next(self._counter)}"
