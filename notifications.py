"""
Notification outbox.

Transitions call one of the ``enqueue_*`` helpers inside their own
transaction; nothing here commits on the caller's behalf. Rows start with
``delivered_at = NULL`` and are handed to a sink by ``deliver_pending``,
which the application runs periodically in the background.
"""

import asyncio
from typing import Callable, List, Optional

import structlog
from sqlmodel import Session, select

from models import Donation, Notification, NotificationType, Profile, utcnow

logger = structlog.get_logger()

NotificationSink = Callable[[Notification], None]


def enqueue(
    session: Session,
    user_id: int,
    notification_type: NotificationType,
    title: str,
    description: str,
    link: Optional[str] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        description=description,
        link=link,
    )
    session.add(notification)
    return notification


def enqueue_interest_received(session: Session, donation: Donation, ngo: Profile) -> Notification:
    return enqueue(
        session,
        donation.donor_id,
        NotificationType.REQUEST,
        "NGO Interest!",
        f'{ngo.organization_name or "An NGO"} is interested in your item: "{donation.title}".',
        link="donor-donations",
    )


def enqueue_interest_accepted(session: Session, donation: Donation, ngo_id: int) -> Notification:
    return enqueue(
        session,
        ngo_id,
        NotificationType.DONATION,
        "Donation Request Accepted!",
        f'Your request for "{donation.title}" has been accepted! '
        "Start a chat to coordinate pickup.",
        link="ngo-dashboard",
    )


def enqueue_donation_completed(session: Session, donation: Donation, ngo: Profile) -> Notification:
    return enqueue(
        session,
        donation.donor_id,
        NotificationType.DONATION,
        "Donation Completed!",
        f'Your donation "{donation.title}" has been successfully picked up by '
        f'{ngo.organization_name or "the NGO"}. Thank you for your kindness!',
        link="donor-donations",
    )


def enqueue_ngo_approved(session: Session, ngo_id: int) -> Notification:
    return enqueue(
        session,
        ngo_id,
        NotificationType.REQUEST,
        "Profile Approved!",
        "Your NGO verification is complete. Please proceed to make the "
        "activation payment to unlock all features.",
        link="ngo-dashboard",
    )


def enqueue_ngo_rejected(session: Session, ngo_id: int) -> Notification:
    return enqueue(
        session,
        ngo_id,
        NotificationType.REQUEST,
        "Application Rejected",
        "Unfortunately, your NGO application was not approved at this time. "
        "Please contact support for more details.",
        link="landing",
    )


def enqueue_broadcast_nearby(session: Session, donor_id: int, ngo: Profile, title: str) -> Notification:
    return enqueue(
        session,
        donor_id,
        NotificationType.REQUEST,
        "Urgent Request Nearby!",
        f"{ngo.organization_name or 'An NGO'} needs {title}. Can you help?",
        link="donor-dashboard",
    )


def enqueue_new_message(session: Session, receiver_id: int) -> Notification:
    return enqueue(
        session,
        receiver_id,
        NotificationType.MESSAGE,
        "New Message",
        "You have a new message regarding your donation conversation.",
        link="donor-messages",
    )


def log_sink(notification: Notification) -> None:
    logger.info(
        "notification.delivered",
        notification_id=notification.id,
        user_id=notification.user_id,
        type=notification.type.value,
        title=notification.title,
    )


def pending_batch(batch_size: int):
    """
    Oldest undelivered rows, locked for this worker. Rows another worker
    has already locked are skipped. SQLite ignores the lock clause.
    """
    return (
        select(Notification)
        .where(Notification.delivered_at.is_(None))
        .order_by(Notification.id)
        .limit(batch_size)
        .with_for_update(skip_locked=True)
    )


def deliver_pending(
    session: Session,
    sink: NotificationSink = log_sink,
    batch_size: int = 100,
) -> int:
    """
    Hand undelivered notifications to ``sink`` in insertion order.

    The batch stays locked until every accepted row has been stamped and the
    batch is committed, so concurrent workers never hand out the same row.
    If the sink raises, delivery stops there and the failing row (and
    everything after it) stays queued for the next run. Returns the number
    delivered.
    """
    pending: List[Notification] = list(session.exec(pending_batch(batch_size)).all())

    delivered = 0
    for notification in pending:
        try:
            sink(notification)
        except Exception as exc:
            logger.warning(
                "notification.delivery_failed",
                notification_id=notification.id,
                error=str(exc),
            )
            break
        notification.delivered_at = utcnow()
        session.add(notification)
        delivered += 1
    session.commit()

    if delivered:
        logger.debug("notification.batch_delivered", count=delivered)
    return delivered


async def run_delivery_worker(
    session_factory: Callable[[], Session],
    interval_seconds: float,
    sink: NotificationSink = log_sink,
) -> None:
    """Poll the outbox forever; cancel the task to stop it."""
    logger.info("notification.worker_started", interval_seconds=interval_seconds)

    def drain() -> int:
        with session_factory() as session:
            return deliver_pending(session, sink)

    while True:
        try:
            await asyncio.to_thread(drain)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("notification.worker_error", error=str(exc))
        await asyncio.sleep(interval_seconds)
