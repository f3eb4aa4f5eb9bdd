import logging
from functools import partial

from django.db import transaction
from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# Sent by the bidding view once AuctionLedger.place_bid returns a receipt
bid_accepted = Signal()


def enqueue_outbid_notification(auction_id, displaced_bidder_id, amount):
    """
    Hand the notification to the task queue without waiting on it.

    A broker failure is logged and dropped; the bid has already committed.
    """
    from .tasks import notify_displaced_bidder

    try:
        notify_displaced_bidder.delay(auction_id, displaced_bidder_id, str(amount))
    except Exception:
        logger.exception(
            "Could not enqueue outbid notification for user %s on auction %s",
            displaced_bidder_id, auction_id
        )


@receiver(bid_accepted)
def notify_displaced_bidder_on_commit(sender, receipt, using='default', **kwargs):
    """
    When a bid takes the lead from another user, schedule their notification
    to run after the surrounding transaction commits.
    """
    displaced = receipt.displaced_bidder_id
    if displaced is None:
        return

    transaction.on_commit(
        partial(enqueue_outbid_notification, receipt.auction_id, displaced, receipt.accepted_amount),
        using=using
    )
