from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from auctions.arbitrator import BidReceipt
from auctions.models import Auction
from auctions.serializers import (
    AuctionListSerializer,
    BidReceiptSerializer,
    PlaceBidSerializer,
)

from .factories import AuctionFactory


class PlaceBidSerializerTestCase(TestCase):
    def test_valid_amount(self):
        serializer = PlaceBidSerializer(data={'amount': '12.34'})
        self.assertTrue(serializer.is_valid())
        self.assertEqual(serializer.validated_data['amount'], Decimal('12.34'))

    def test_amount_must_be_positive(self):
        self.assertFalse(PlaceBidSerializer(data={'amount': '0'}).is_valid())

    def test_amount_precision(self):
        self.assertFalse(PlaceBidSerializer(data={'amount': '12.345'}).is_valid())


class BidReceiptSerializerTestCase(TestCase):
    def test_first_bid_has_no_previous_bidder(self):
        data = BidReceiptSerializer(BidReceipt(3, 9, Decimal('15'), None, 1)).data
        self.assertEqual(data['accepted_amount'], '15.00')
        self.assertIsNone(data['previous_bidder_id'])

    def test_previous_bidder(self):
        data = BidReceiptSerializer(BidReceipt(3, 9, Decimal('20'), 4, 2)).data
        self.assertEqual(data['previous_bidder_id'], 4)
        self.assertEqual(data['bid_count'], 2)


class AuctionListSerializerTestCase(TestCase):
    def test_time_left_by_status(self):
        auction = AuctionFactory(end_time=timezone.now() + timedelta(days=2, hours=1))
        self.assertRegex(AuctionListSerializer(auction).data['time_left'], r'^[12]d \d+h \d+m$')

        auction.status = Auction.PENDING
        self.assertEqual(AuctionListSerializer(auction).data['time_left'], "Awaiting approval")

        auction.status = Auction.COMPLETED
        self.assertEqual(AuctionListSerializer(auction).data['time_left'], "Auction closed")

    def test_time_left_after_end(self):
        auction = AuctionFactory(end_time=timezone.now() + timedelta(minutes=1))
        auction.end_time = timezone.now() - timedelta(minutes=1)
        self.assertEqual(AuctionListSerializer(auction).data['time_left'], "Auction ended")
