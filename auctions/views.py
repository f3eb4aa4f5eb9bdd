from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from .ledger import AuctionLedger
from .models import Auction, Bid
from .permissions import CanBidOnAuction, IsVendorOrAdmin
from .serializers import (
    AuctionDetailSerializer,
    AuctionListSerializer,
    AuctionSubmitSerializer,
    BidReceiptSerializer,
    BidSerializer,
    PlaceBidSerializer,
)
from .signals import bid_accepted


class AuctionViewSet(mixins.CreateModelMixin, viewsets.GenericViewSet):
    """
    API endpoint for auctions.
    """
    queryset = Auction.objects.all()

    def initial(self, request, *args, **kwargs):
        # Built per request so the current lock timeout setting applies
        self.ledger = AuctionLedger()
        super().initial(request, *args, **kwargs)

    def get_serializer_class(self):
        if self.action == 'create':
            return AuctionSubmitSerializer
        elif self.action == 'bid':
            return PlaceBidSerializer
        elif self.action == 'retrieve':
            return AuctionDetailSerializer
        return AuctionListSerializer

    def get_permissions(self):
        """
        - Approve, reject, end: admins only
        - Bid: authenticated users other than the vendor
        - Everything else: any authenticated user
        """
        if self.action in ['approve', 'reject', 'end']:
            permission_classes = [permissions.IsAdminUser]
        elif self.action == 'bid':
            permission_classes = [CanBidOnAuction]
        else:
            permission_classes = [permissions.IsAuthenticated]
        return [permission() for permission in permission_classes]

    def get_object(self):
        auction = self.ledger.get_by_id(self.kwargs['pk'])
        if auction.status == Auction.PENDING:
            # Unapproved submissions are only visible to their vendor and admins
            if not IsVendorOrAdmin().has_object_permission(self.request, self, auction):
                self.permission_denied(self.request)
        self.check_object_permissions(self.request, auction)
        return auction

    @swagger_auto_schema(
        manual_parameters=[
            openapi.Parameter(
                'status', openapi.IN_QUERY, type=openapi.TYPE_STRING,
                enum=[choice for choice, _ in Auction.STATUS_CHOICES],
                description='Lifecycle status to list (default: active)'
            ),
        ],
        responses={200: AuctionListSerializer(many=True)}
    )
    def list(self, request):
        auction_status = request.query_params.get('status', Auction.ACTIVE)
        if auction_status == Auction.PENDING and not request.user.is_staff:
            auctions = [
                auction for auction in self.ledger.get_by_status(Auction.PENDING)
                if auction.vendor_id == request.user.pk
            ]
        else:
            auctions = self.ledger.get_by_status(auction_status)
        serializer = AuctionListSerializer(auctions, many=True)
        return Response(serializer.data)

    def retrieve(self, request, pk=None):
        auction = self.get_object()
        return Response(AuctionDetailSerializer(auction).data)

    def perform_create(self, serializer):
        serializer.instance = self.ledger.submit(self.request.user, **serializer.validated_data)

    @swagger_auto_schema(responses={200: BidSerializer(many=True), 404: 'Auction not found'})
    @action(detail=True, methods=['get'])
    def bids(self, request, pk=None):
        """
        Bid history for an auction, oldest first.
        """
        auction = self.get_object()
        serializer = BidSerializer(self.ledger.bids_for(auction.pk), many=True)
        return Response(serializer.data)

    @swagger_auto_schema(
        request_body=PlaceBidSerializer,
        responses={
            200: BidReceiptSerializer,
            400: 'Bid amount not above the current bid',
            404: 'Auction not found',
            409: 'Auction not accepting bids',
            503: 'Auction busy, retry',
        },
        operation_description="Place a bid on an auction"
    )
    @action(detail=True, methods=['post'])
    def bid(self, request, pk=None):
        auction = self.get_object()
        serializer = PlaceBidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        receipt = self.ledger.place_bid(auction.pk, request.user.pk, serializer.validated_data['amount'])
        bid_accepted.send(sender=self.__class__, receipt=receipt, using=self.ledger.using)

        return Response(BidReceiptSerializer(receipt).data, status=status.HTTP_200_OK)

    def _transition(self, pk, new_status):
        auction = self.ledger.transition(pk, new_status)
        return Response(AuctionDetailSerializer(auction).data)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        return self._transition(pk, Auction.ACTIVE)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        return self._transition(pk, Auction.REJECTED)

    @action(detail=True, methods=['post'])
    def end(self, request, pk=None):
        return self._transition(pk, Auction.COMPLETED)


class BidViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for bids.
    Users can only view their own bids unless they're an admin.
    """
    queryset = Bid.objects.all()
    serializer_class = BidSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        """
        - auction: Filter by auction ID
        - Non-admin users can only see their own bids
        """
        user = self.request.user
        queryset = Bid.objects.select_related('bidder')

        auction_id = self.request.query_params.get('auction')
        if auction_id:
            queryset = queryset.filter(auction_id=auction_id)

        if not user.is_staff:
            queryset = queryset.filter(bidder=user)

        return queryset
