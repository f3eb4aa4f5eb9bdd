from rest_framework import permissions


class IsVendorOrAdmin(permissions.BasePermission):
    """
    Only the vendor who submitted an auction, or an admin, may see it
    before it is approved.
    """
    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True
        return obj.vendor_id == request.user.pk


class CanBidOnAuction(permissions.BasePermission):
    """
    Vendors may not bid on their own items. Whether the auction is still
    open is decided inside the bid transaction.
    """
    message = "You cannot bid on your own auction"

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        return obj.vendor_id != request.user.pk
