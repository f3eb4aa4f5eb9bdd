import logging

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def notify_displaced_bidder(auction_id, displaced_bidder_id, amount):
    """
    Tell a bidder they have been outbid.

    Delivery is best effort: failures are logged and the task returns normally.
    """
    from .models import Auction

    User = get_user_model()
    try:
        user = User.objects.get(pk=displaced_bidder_id)
        auction = Auction.objects.get(pk=auction_id)
    except (User.DoesNotExist, Auction.DoesNotExist):
        logger.warning(
            "Skipping outbid notification: auction %s or user %s no longer exists",
            auction_id, displaced_bidder_id
        )
        return False

    if not user.email:
        logger.warning("User %s has no email address; outbid notification skipped", user.pk)
        return False

    try:
        send_mail(
            subject=f"You have been outbid on {auction.item_name}",
            message=(
                f"Another bidder placed ${amount} on {auction.item_name}. "
                f"Place a higher bid before {auction.end_time:%Y-%m-%d %H:%M %Z} to take the lead."
            ),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
        )
    except Exception:
        logger.exception("Outbid notification to user %s failed", user.pk)
        return False

    logger.info("Outbid notification sent to user %s for auction %s", user.pk, auction_id)
    return True


@shared_task
def close_expired_auctions():
    """
    Complete active auctions whose end time has passed.
    """
    from .ledger import AuctionLedger

    closed_count = AuctionLedger().complete_expired()
    return f"Completed {closed_count} auctions"


@shared_task
def audit_leader_pointers():
    """
    Compare each auction's leader fields against its bid history and log any
    mismatch.
    """
    from .ledger import AuctionLedger

    drifted = AuctionLedger().find_drift()
    for auction in drifted:
        logger.error(
            "Auction %s leader fields disagree with bid history "
            "(current_bid=%s, current_bidder=%s, bid_count=%s)",
            auction.pk, auction.current_bid, auction.current_bidder_id, auction.bid_count
        )
    return f"Found {len(drifted)} inconsistent auctions"
