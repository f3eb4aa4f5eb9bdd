"""
Errors raised by the auction ledger.

Each one is a DRF ``APIException`` so a view can let it propagate and the
framework renders the matching status code.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class AuctionNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Auction not found.'
    default_code = 'auction_not_found'

    def __init__(self, auction_id):
        self.auction_id = auction_id
        super().__init__(f"Auction {auction_id} not found.")


class BidTooLow(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Bid amount is too low.'
    default_code = 'bid_too_low'

    def __init__(self, amount, current_bid):
        self.amount = amount
        self.current_bid = current_bid
        super().__init__({
            'detail': f"Bid amount must be greater than current bid (${current_bid})",
            'current_bid': str(current_bid),
        })


class AuctionClosed(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This auction is not accepting bids.'
    default_code = 'auction_closed'

    def __init__(self, auction_id, auction_status):
        self.auction_id = auction_id
        self.auction_status = auction_status
        super().__init__(f"Auction {auction_id} is not accepting bids (status: {auction_status}).")


class AuctionBusy(APIException):
    """Lock wait on the auction row ran out; the request may be retried."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Auction is busy, please retry.'
    default_code = 'auction_busy'
    wait = 1

    def __init__(self, auction_id):
        self.auction_id = auction_id
        super().__init__()


class StorageFailure(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Storage operation failed.'
    default_code = 'storage_failure'


class InvalidTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Status change not allowed.'
    default_code = 'invalid_transition'

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move auction from {current} to {requested}.")


class InvalidBidAmount(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Bid amount is not a valid price.'
    default_code = 'invalid_bid_amount'

    def __init__(self, amount, reason):
        self.amount = amount
        self.reason = reason
        super().__init__({'detail': f"Invalid bid amount {amount}: {reason}", 'amount': str(amount)})
