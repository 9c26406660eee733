"""Notifier protocol — interface for delivery backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from courier.scheduler.models import Attachment


@runtime_checkable
class Notifier(Protocol):
    """Protocol that all delivery backends must satisfy."""

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        *,
        attachment: Attachment | None = None,
    ) -> bool:
        """Deliver one message. Returns True on success.

        May raise DeliveryFailed instead of returning False.
        """
        ...
