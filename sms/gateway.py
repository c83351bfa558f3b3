from __future__ import annotations

# Gateways are duck-typed: anything with a compatible send() can be dispatched.

from dataclasses import dataclass
from typing import Any


class Message:
    """Anything whose str() is the SMS body qualifies as a message."""

    def __str__(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class TextMessage(Message):
    body: str

    def __str__(self) -> str:
        return self.body


class Gateway:
    def send(self, to: str, message: Message | str, callback: str = "") -> Any:
        raise NotImplementedError("gateway does not implement send")


def send(gateway: Gateway, to: str, message: Message | str, callback: str = "") -> Any:
    """Send ``message`` to ``to`` through ``gateway`` and return its result."""
    return gateway.send(to, message, callback)
