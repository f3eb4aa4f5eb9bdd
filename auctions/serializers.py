from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from .models import Auction, Bid


class BidSerializer(serializers.ModelSerializer):
    bidder_username = serializers.ReadOnlyField(source='bidder.username')

    class Meta:
        model = Bid
        fields = ['id', 'auction', 'bidder', 'bidder_username', 'amount', 'created_at']
        read_only_fields = fields


class PlaceBidSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))


class BidReceiptSerializer(serializers.Serializer):
    auction_id = serializers.IntegerField()
    accepted_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    previous_bidder_id = serializers.IntegerField(allow_null=True)
    bid_count = serializers.IntegerField()


class AuctionListSerializer(serializers.ModelSerializer):
    vendor_username = serializers.ReadOnlyField(source='vendor.username')
    time_left = serializers.SerializerMethodField()

    class Meta:
        model = Auction
        fields = [
            'id', 'item_name', 'category', 'image_url', 'min_bid', 'current_bid',
            'bid_count', 'vendor_username', 'end_time', 'status', 'time_left'
        ]
        read_only_fields = fields

    def get_time_left(self, obj):
        if obj.status == Auction.PENDING:
            return "Awaiting approval"
        elif obj.status in (Auction.REJECTED, Auction.COMPLETED):
            return "Auction closed"

        now = timezone.now()
        if now >= obj.end_time:
            return "Auction ended"

        time_left = obj.end_time - now
        days = time_left.days
        hours, remainder = divmod(time_left.seconds, 3600)
        minutes, seconds = divmod(remainder, 60)

        if days > 0:
            return f"{days}d {hours}h {minutes}m"
        elif hours > 0:
            return f"{hours}h {minutes}m {seconds}s"
        return f"{minutes}m {seconds}s"


class AuctionDetailSerializer(AuctionListSerializer):
    current_bidder_username = serializers.ReadOnlyField(
        source='current_bidder.username',
        allow_null=True
    )

    class Meta(AuctionListSerializer.Meta):
        fields = AuctionListSerializer.Meta.fields + [
            'description', 'vendor', 'current_bidder', 'current_bidder_username',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class AuctionSubmitSerializer(serializers.ModelSerializer):
    class Meta:
        model = Auction
        fields = ['id', 'item_name', 'description', 'category', 'image_url', 'min_bid', 'end_time']
        read_only_fields = ['id']

    def validate_end_time(self, value):
        if value <= timezone.now():
            raise serializers.ValidationError("End time must be in the future")
        return value
