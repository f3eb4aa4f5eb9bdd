from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, call, patch

from django.test import TestCase, override_settings
from django.utils import timezone

from auctions.exceptions import AuctionNotFound, InvalidTransition
from auctions.ledger import AuctionLedger
from auctions.models import Auction

from .factories import AuctionFactory, BidFactory, UserFactory


class LedgerReadTestCase(TestCase):
    def setUp(self):
        self.ledger = AuctionLedger()
        self.pending = AuctionFactory(status=Auction.PENDING)
        self.active = AuctionFactory(status=Auction.ACTIVE)
        self.other_active = AuctionFactory(status=Auction.ACTIVE)
        self.rejected = AuctionFactory(status=Auction.REJECTED)

    def test_get_by_status(self):
        active = self.ledger.get_by_status(Auction.ACTIVE)
        self.assertEqual({a.pk for a in active}, {self.active.pk, self.other_active.pk})

        self.assertEqual([a.pk for a in self.ledger.get_by_status(Auction.PENDING)], [self.pending.pk])
        self.assertEqual(self.ledger.get_by_status(Auction.COMPLETED), [])

    def test_get_by_id(self):
        auction = self.ledger.get_by_id(self.active.pk)
        self.assertEqual(auction.item_name, self.active.item_name)
        self.assertEqual(auction.min_bid, Decimal('10.00'))
        self.assertEqual(auction.current_bid, Decimal('10.00'))
        self.assertIsNone(auction.current_bidder)

    def test_get_by_id_not_found(self):
        with self.assertRaises(AuctionNotFound) as ctx:
            self.ledger.get_by_id(424242)
        self.assertEqual(ctx.exception.auction_id, 424242)

    def test_bids_for_unknown_auction(self):
        with self.assertRaises(AuctionNotFound):
            self.ledger.bids_for(424242)

    @override_settings(BID_LOCK_TIMEOUT=0.25)
    def test_lock_timeout_defaults_from_settings(self):
        self.assertEqual(AuctionLedger().lock_timeout, 0.25)
        self.assertEqual(AuctionLedger(lock_timeout=2).lock_timeout, 2)


class LedgerStatusTestCase(TestCase):
    def setUp(self):
        self.ledger = AuctionLedger()
        self.auction = AuctionFactory(status=Auction.PENDING)

    def test_set_status_overwrites_without_validation(self):
        # Going straight from pending to completed is not a legal workflow
        # move, but set_status does not judge
        self.assertTrue(self.ledger.set_status(self.auction.pk, Auction.COMPLETED))
        self.auction.refresh_from_db()
        self.assertEqual(self.auction.status, Auction.COMPLETED)

    def test_set_status_bumps_updated_at(self):
        before = self.auction.updated_at
        self.ledger.set_status(self.auction.pk, Auction.ACTIVE)
        self.auction.refresh_from_db()
        self.assertGreaterEqual(self.auction.updated_at, before)

    def test_set_status_not_found(self):
        with self.assertRaises(AuctionNotFound):
            self.ledger.set_status(424242, Auction.ACTIVE)

    def test_transition_follows_workflow(self):
        auction = self.ledger.transition(self.auction.pk, Auction.ACTIVE)
        self.assertEqual(auction.status, Auction.ACTIVE)
        auction = self.ledger.transition(self.auction.pk, Auction.COMPLETED)
        self.assertEqual(auction.status, Auction.COMPLETED)

    def test_transition_rejects_illegal_move(self):
        with self.assertRaises(InvalidTransition):
            self.ledger.transition(self.auction.pk, Auction.COMPLETED)
        self.auction.refresh_from_db()
        self.assertEqual(self.auction.status, Auction.PENDING)

    def test_rejected_is_terminal(self):
        self.ledger.transition(self.auction.pk, Auction.REJECTED)
        with self.assertRaises(InvalidTransition):
            self.ledger.transition(self.auction.pk, Auction.ACTIVE)

    def test_submit_creates_pending_auction(self):
        vendor = UserFactory()
        auction = self.ledger.submit(
            vendor,
            item_name='Brass lamp',
            description='Early 1900s',
            category='lighting',
            min_bid=Decimal('25.00'),
            end_time=timezone.now() + timedelta(days=2),
        )
        self.assertEqual(auction.status, Auction.PENDING)
        self.assertEqual(auction.vendor, vendor)
        self.assertEqual(auction.current_bid, Decimal('25.00'))
        self.assertEqual(auction.bid_count, 0)


class CompleteExpiredTestCase(TestCase):
    def setUp(self):
        self.ledger = AuctionLedger()
        self.now = timezone.now()
        self.expired = AuctionFactory(end_time=self.now - timedelta(minutes=5))
        self.running = AuctionFactory(end_time=self.now + timedelta(hours=1))
        self.pending_expired = AuctionFactory(
            status=Auction.PENDING,
            end_time=self.now - timedelta(minutes=5)
        )

    def test_only_active_expired_auctions_complete(self):
        self.assertEqual(self.ledger.complete_expired(self.now), 1)

        self.expired.refresh_from_db()
        self.running.refresh_from_db()
        self.pending_expired.refresh_from_db()
        self.assertEqual(self.expired.status, Auction.COMPLETED)
        self.assertEqual(self.running.status, Auction.ACTIVE)
        self.assertEqual(self.pending_expired.status, Auction.PENDING)

    def test_second_sweep_is_a_no_op(self):
        self.ledger.complete_expired(self.now)
        self.assertEqual(self.ledger.complete_expired(self.now), 0)


class FindDriftTestCase(TestCase):
    def setUp(self):
        self.ledger = AuctionLedger()
        self.bidder = UserFactory()
        self.auction = AuctionFactory()

    def test_ledger_written_bids_are_consistent(self):
        AuctionFactory()
        self.ledger.place_bid(self.auction.pk, self.bidder.pk, Decimal('12'))
        self.ledger.place_bid(self.auction.pk, UserFactory().pk, Decimal('14'))
        self.assertEqual(self.ledger.find_drift(), [])

    def test_bid_written_around_the_ledger_is_reported(self):
        BidFactory(auction=self.auction, bidder=self.bidder, amount=Decimal('50.00'))
        self.assertEqual([a.pk for a in self.ledger.find_drift()], [self.auction.pk])

    def test_wrong_leader_is_reported(self):
        self.ledger.place_bid(self.auction.pk, self.bidder.pk, Decimal('12'))
        Auction.objects.filter(pk=self.auction.pk).update(current_bidder=UserFactory())
        self.assertEqual([a.pk for a in self.ledger.find_drift()], [self.auction.pk])


class LockTimeoutTestCase(TestCase):
    def fake_connection(self, vendor, session_timeout=50):
        connection = MagicMock(vendor=vendor)
        cursor = connection.cursor.return_value.__enter__.return_value
        cursor.fetchone.return_value = (session_timeout,)
        return connection, cursor

    def test_postgres_timeout_is_transaction_scoped(self):
        connection, cursor = self.fake_connection('postgresql')
        with patch('auctions.ledger.connections', {'default': connection}):
            restore = AuctionLedger(lock_timeout=2.5)._apply_lock_timeout()

        self.assertIsNone(restore)
        cursor.execute.assert_called_once_with("SET LOCAL lock_timeout = 2500")

    def test_mysql_session_timeout_is_restored(self):
        connection, cursor = self.fake_connection('mysql', session_timeout=50)
        with patch('auctions.ledger.connections', {'default': connection}):
            restore = AuctionLedger(lock_timeout=2.5)._apply_lock_timeout()
            self.assertEqual(
                cursor.execute.call_args_list[-1],
                call("SET SESSION innodb_lock_wait_timeout = 3")
            )
            restore()

        cursor.execute.assert_called_with("SET SESSION innodb_lock_wait_timeout = 50")

    def test_restore_runs_after_failed_transaction(self):
        restored = []
        with patch.object(AuctionLedger, '_apply_lock_timeout', return_value=lambda: restored.append(True)):
            with self.assertRaises(AuctionNotFound):
                with AuctionLedger().locked_auction(424242):
                    pass
        self.assertEqual(restored, [True])

    def test_restore_runs_after_commit(self):
        auction = AuctionFactory()
        restored = []
        with patch.object(AuctionLedger, '_apply_lock_timeout', return_value=lambda: restored.append(True)):
            AuctionLedger().place_bid(auction.pk, UserFactory().pk, Decimal('11'))
        self.assertEqual(restored, [True])
