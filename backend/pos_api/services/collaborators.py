"""
External collaborators.

The engine only depends on these interfaces; concrete implementations
(chat order parser, image storage, ticket printer) live outside it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from shared.utils.schemas import MenuItem, ParsedOrder, PrinterSettings


@runtime_checkable
class OrderParser(Protocol):
    """Turns a free-form chat message into a structured order."""

    def parse(self, text: str, menu: list[MenuItem], order_type: str) -> ParsedOrder | None:
        """None when the text could not be parsed."""
        ...


@runtime_checkable
class ReceiptImageStore(Protocol):
    """Stores expense receipt pictures."""

    def upload(self, content: bytes, filename: str) -> str | None:
        """Public URL of the stored image, or None on failure."""
        ...

    def delete(self, url: str) -> None:
        ...


@runtime_checkable
class ReceiptPrinter(Protocol):
    """Renders and prints a kitchen or customer ticket."""

    def print_order(self, order: Any, settings: PrinterSettings) -> None:
        ...
