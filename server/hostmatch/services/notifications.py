"""Outbound notification boundary.

Delivery (email, SMS, push) lives outside this service. The engine only calls
a ``Notifier`` after its transaction has committed; a failed delivery is
logged and counted, and never undoes the state change that triggered it.
"""

import logging
from typing import Awaitable, Callable

from ..core.observability import metrics_collector
from ..models.booking import Booking, ReassignmentToken
from ..models.invitation import ManagementInvitation

logger = logging.getLogger(__name__)


class Notifier:
    """Interface for user-facing notifications."""

    async def vehicle_change_proposed(self, booking: Booking, token: ReassignmentToken, consent_url: str) -> None:
        raise NotImplementedError

    async def invitation_sent(self, invitation: ManagementInvitation) -> None:
        raise NotImplementedError

    async def invitation_countered(self, invitation: ManagementInvitation, recipient: str) -> None:
        raise NotImplementedError

    async def invitation_responded(self, invitation: ManagementInvitation) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Notifier that records what would have been sent."""

    async def vehicle_change_proposed(self, booking: Booking, token: ReassignmentToken, consent_url: str) -> None:
        logger.info(
            "Vehicle change consent requested",
            extra={
                "booking_id": str(booking.id),
                "guest_email": booking.guest_email,
                "new_car_id": str(token.new_car_id),
                "expires_at": token.expires_at.isoformat(),
                "consent_url": consent_url,
            }
        )

    async def invitation_sent(self, invitation: ManagementInvitation) -> None:
        logger.info(
            "Management invitation sent",
            extra={
                "invitation_id": str(invitation.id),
                "recipient_email": invitation.recipient_email,
                "invitation_type": invitation.invitation_type,
            }
        )

    async def invitation_countered(self, invitation: ManagementInvitation, recipient: str) -> None:
        logger.info(
            "Management counter-offer sent",
            extra={
                "invitation_id": str(invitation.id),
                "recipient": recipient,
                "round": invitation.negotiation_rounds,
            }
        )

    async def invitation_responded(self, invitation: ManagementInvitation) -> None:
        logger.info(
            "Management invitation answered",
            extra={
                "invitation_id": str(invitation.id),
                "sender_email": invitation.sender_email,
                "status": invitation.status,
            }
        )


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _notifier


async def deliver(kind: str, send: Callable[[], Awaitable[None]], **context) -> bool:
    """
    Run a notification after commit, logging instead of raising on failure.

    Returns:
        bool: True if the notifier accepted the message
    """
    try:
        await send()
    except Exception as e:
        metrics_collector.record_notification_failed(kind)
        logger.error(
            "Notification delivery failed",
            extra={"kind": kind, "error": str(e), **context},
            exc_info=True,
        )
        return False
    return True
