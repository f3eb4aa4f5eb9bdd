"""
Auction ledger: durable storage and atomic state changes for auctions and bids.
"""
import logging
import math
from contextlib import contextmanager

from django.conf import settings
from django.db import DatabaseError, connections, transaction
from django.db.models import Count, Max
from django.utils import timezone

from .arbitrator import arbitrate
from .exceptions import AuctionBusy, AuctionNotFound, InvalidTransition, StorageFailure
from .models import Auction, Bid

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
POSTGRES_LOCK_CODES = {'55P03', '40P01', '40001'}
# ER_LOCK_WAIT_TIMEOUT, ER_LOCK_DEADLOCK
MYSQL_LOCK_ERRORS = {1205, 1213}


def is_lock_contention(exc):
    """True when a database error means another transaction held the row too long."""
    cause = exc.__cause__
    code = getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)
    if code in POSTGRES_LOCK_CODES:
        return True
    args = getattr(cause, 'args', None) or exc.args
    if args and args[0] in MYSQL_LOCK_ERRORS:
        return True
    # SQLite: "database is locked" or "database table is locked"
    return 'is locked' in str(exc).lower()


class AuctionLedger:
    """
    Reads and atomic writes against the auction tables.

    One ledger is bound to one database alias; every write runs in its own
    ``transaction.atomic`` block so the connection is released on all paths.
    """

    def __init__(self, using='default', lock_timeout=None):
        self.using = using
        if lock_timeout is None:
            lock_timeout = settings.BID_LOCK_TIMEOUT
        self.lock_timeout = lock_timeout

    @property
    def auctions(self):
        return Auction.objects.using(self.using)

    @contextmanager
    def storage_errors(self):
        try:
            yield
        except DatabaseError as exc:
            logger.exception("Auction storage operation failed")
            raise StorageFailure() from exc

    def get_by_status(self, status):
        with self.storage_errors():
            return list(self.auctions.filter(status=status).select_related('vendor', 'current_bidder'))

    def get_by_id(self, auction_id):
        with self.storage_errors():
            try:
                return self.auctions.select_related('vendor', 'current_bidder').get(pk=auction_id)
            except (Auction.DoesNotExist, ValueError, TypeError):
                raise AuctionNotFound(auction_id) from None

    def bids_for(self, auction_id):
        auction = self.get_by_id(auction_id)
        with self.storage_errors():
            return list(auction.bids.select_related('bidder'))

    def submit(self, vendor, **item):
        """Record a vendor submission awaiting admin review."""
        with self.storage_errors():
            auction = self.auctions.create(vendor=vendor, status=Auction.PENDING, **item)
        logger.info("Auction %s submitted by vendor %s", auction.pk, vendor.pk)
        return auction

    def set_status(self, auction_id, new_status):
        """Overwrite the status without checking whether the move is allowed."""
        with self.storage_errors():
            try:
                updated = self.auctions.filter(pk=auction_id).update(
                    status=new_status,
                    updated_at=timezone.now()
                )
            except (ValueError, TypeError):
                updated = 0
        if not updated:
            raise AuctionNotFound(auction_id)
        logger.info("Auction %s status set to %s", auction_id, new_status)
        return True

    def transition(self, auction_id, new_status):
        """Admin workflow status change, validated under the row lock."""
        with self.locked_auction(auction_id) as auction:
            if not auction.can_transition(new_status):
                raise InvalidTransition(auction.status, new_status)
            auction.status = new_status
            auction.save(using=self.using, update_fields=['status', 'updated_at'])
        logger.info("Auction %s moved to %s", auction_id, new_status)
        return auction

    def place_bid(self, auction_id, bidder_id, amount, now=None):
        return arbitrate(self, auction_id, bidder_id, amount, now=now)

    @contextmanager
    def locked_auction(self, auction_id):
        """
        Open a transaction and hold an exclusive lock on one auction row.

        Lock waits longer than ``lock_timeout`` surface as ``AuctionBusy``;
        any other database error as ``StorageFailure``. Either way the
        transaction is rolled back.
        """
        restore = None
        try:
            with transaction.atomic(using=self.using):
                restore = self._apply_lock_timeout()
                try:
                    auction = self.auctions.select_for_update().get(pk=auction_id)
                except (Auction.DoesNotExist, ValueError, TypeError):
                    raise AuctionNotFound(auction_id) from None
                yield auction
        except DatabaseError as exc:
            if is_lock_contention(exc):
                logger.warning("Timed out waiting for lock on auction %s", auction_id)
                raise AuctionBusy(auction_id) from exc
            logger.exception("Transaction on auction %s failed", auction_id)
            raise StorageFailure() from exc
        finally:
            if restore is not None:
                with self.storage_errors():
                    restore()

    def record_bid(self, auction, bidder_id, amount, now):
        """Append a bid and move the leader pointer. Caller holds the row lock."""
        Bid.objects.using(self.using).create(
            auction=auction,
            bidder_id=bidder_id,
            amount=amount,
            created_at=now
        )
        auction.current_bid = amount
        auction.current_bidder_id = bidder_id
        auction.bid_count += 1
        auction.save(
            using=self.using,
            update_fields=['current_bid', 'current_bidder', 'bid_count', 'updated_at']
        )

    def complete_expired(self, now=None):
        """Complete every active auction whose end time has passed."""
        now = now or timezone.now()
        with self.storage_errors():
            closed = self.auctions.filter(
                status=Auction.ACTIVE,
                end_time__lte=now
            ).update(status=Auction.COMPLETED, updated_at=now)
        if closed:
            logger.info("Completed %s expired auctions", closed)
        return closed

    def find_drift(self):
        """Auctions whose leader fields disagree with their bid history."""
        drifted = []
        with self.storage_errors():
            annotated = self.auctions.annotate(
                recorded_bids=Count('bids'),
                top_amount=Max('bids__amount')
            )
            for auction in annotated:
                expected_bid = auction.top_amount if auction.top_amount is not None else auction.min_bid
                if auction.recorded_bids != auction.bid_count or expected_bid != auction.current_bid:
                    drifted.append(auction)
                    continue
                top = auction.highest_bid
                expected_bidder = top.bidder_id if top else None
                if expected_bidder != auction.current_bidder_id:
                    drifted.append(auction)
        return drifted

    def _apply_lock_timeout(self):
        """
        Bound lock waits for the current transaction.

        Returns a callable that undoes any connection-wide change, or None.
        """
        connection = connections[self.using]
        if connection.vendor == 'postgresql':
            # SET LOCAL ends with the transaction
            with connection.cursor() as cursor:
                cursor.execute(f"SET LOCAL lock_timeout = {int(self.lock_timeout * 1000)}")
        elif connection.vendor == 'mysql':
            # The session variable outlives the transaction on a pooled connection
            with connection.cursor() as cursor:
                cursor.execute("SELECT @@SESSION.innodb_lock_wait_timeout")
                previous = int(cursor.fetchone()[0])
                cursor.execute(
                    f"SET SESSION innodb_lock_wait_timeout = {max(1, math.ceil(self.lock_timeout))}"
                )

            def restore():
                with connection.cursor() as cursor:
                    cursor.execute(f"SET SESSION innodb_lock_wait_timeout = {previous}")
            return restore
        # SQLite applies the connection's busy timeout
        return None
