"""
Bid arbitration.

``arbitrate`` is the read-validate-write sequence that decides whether a bid
wins. It runs inside ``AuctionLedger.locked_auction`` so the auction row is
held exclusively from the first read until commit, and nothing it writes is
visible unless every step succeeds.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.utils import timezone

from .exceptions import AuctionClosed, BidTooLow, InvalidBidAmount
from .models import Bid

logger = logging.getLogger(__name__)


def normalize_amount(amount) -> Decimal:
    """
    Return ``amount`` exactly as the bid column will store it.

    Amounts the column would round or cannot hold are refused rather than
    adjusted, so the value compared under the lock is the value written.
    """
    field = Bid._meta.get_field('amount')
    places = Decimal(1).scaleb(-field.decimal_places)

    if isinstance(amount, float):
        amount = str(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidBidAmount(amount, "must be a number") from None
    if not value.is_finite():
        raise InvalidBidAmount(amount, "must be a finite number")
    try:
        stored = value.quantize(places)
    except InvalidOperation:
        raise InvalidBidAmount(amount, f"at most {field.max_digits} digits allowed") from None

    if stored != value:
        raise InvalidBidAmount(amount, f"at most {field.decimal_places} decimal places allowed")
    if len(stored.as_tuple().digits) > field.max_digits:
        raise InvalidBidAmount(amount, f"at most {field.max_digits} digits allowed")
    if stored <= 0:
        raise InvalidBidAmount(amount, "must be greater than zero")
    return stored


@dataclass(frozen=True)
class BidReceipt:
    """Outcome of an accepted bid."""
    auction_id: int
    bidder_id: int
    accepted_amount: Decimal
    previous_bidder_id: Optional[int]
    bid_count: int

    @property
    def displaced_bidder_id(self) -> Optional[int]:
        """The previous leader, unless the bidder just raised their own bid."""
        if self.previous_bidder_id is None or self.previous_bidder_id == self.bidder_id:
            return None
        return self.previous_bidder_id


def arbitrate(ledger, auction_id, bidder_id, amount, now=None) -> BidReceipt:
    amount = normalize_amount(amount)

    with ledger.locked_auction(auction_id) as auction:
        now = now or timezone.now()

        if not auction.is_open(now):
            logger.info(
                "Bid on auction %s refused: status=%s end_time=%s",
                auction_id, auction.status, auction.end_time
            )
            raise AuctionClosed(auction_id, auction.status)

        # Ties never win
        if amount <= auction.current_bid:
            logger.info(
                "Bid of %s on auction %s refused: current bid is %s",
                amount, auction_id, auction.current_bid
            )
            raise BidTooLow(amount, auction.current_bid)

        previous_bidder_id = auction.current_bidder_id
        ledger.record_bid(auction, bidder_id, amount, now)

    logger.info(
        "Bid of %s by user %s accepted on auction %s (previous leader: %s)",
        amount, bidder_id, auction_id, previous_bidder_id
    )
    return BidReceipt(
        auction_id=auction.pk,
        bidder_id=bidder_id,
        accepted_amount=amount,
        previous_bidder_id=previous_bidder_id,
        bid_count=auction.bid_count,
    )
