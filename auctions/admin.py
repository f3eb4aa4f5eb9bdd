from django.contrib import admin, messages

from .exceptions import AuctionNotFound, InvalidTransition
from .ledger import AuctionLedger
from .models import Auction, Bid


class BidInline(admin.TabularInline):
    model = Bid
    fields = ('bidder', 'amount', 'created_at')
    readonly_fields = ('bidder', 'amount', 'created_at')
    extra = 0
    can_delete = False
    ordering = ('-amount',)

    def has_add_permission(self, request, obj=None):
        return False


def _move_selected(modeladmin, request, queryset, new_status):
    ledger = AuctionLedger()
    moved = 0
    for auction in queryset:
        try:
            ledger.transition(auction.pk, new_status)
        except (InvalidTransition, AuctionNotFound) as exc:
            modeladmin.message_user(request, f"{auction}: {exc.detail}", messages.WARNING)
        else:
            moved += 1
    modeladmin.message_user(request, f"{moved} auction(s) set to {new_status}.")


@admin.action(description="Approve selected auctions")
def approve_auctions(modeladmin, request, queryset):
    _move_selected(modeladmin, request, queryset, Auction.ACTIVE)


@admin.action(description="Reject selected auctions")
def reject_auctions(modeladmin, request, queryset):
    _move_selected(modeladmin, request, queryset, Auction.REJECTED)


@admin.action(description="End selected auctions")
def end_auctions(modeladmin, request, queryset):
    _move_selected(modeladmin, request, queryset, Auction.COMPLETED)


@admin.register(Auction)
class AuctionAdmin(admin.ModelAdmin):
    list_display = ('item_name', 'vendor', 'min_bid', 'current_bid', 'bid_count', 'status', 'end_time', 'current_bidder')
    list_filter = ('status', 'category', 'created_at', 'end_time')
    search_fields = ('item_name', 'description', 'vendor__username')
    readonly_fields = ('status', 'current_bid', 'current_bidder', 'bid_count', 'created_at', 'updated_at')
    date_hierarchy = 'created_at'
    inlines = [BidInline]
    actions = [approve_auctions, reject_auctions, end_auctions]

    fieldsets = (
        ('Item', {
            'fields': ('item_name', 'description', 'category', 'image_url', 'vendor')
        }),
        ('Bidding', {
            'fields': ('min_bid', 'current_bid', 'current_bidder', 'bid_count')
        }),
        ('Lifecycle', {
            'fields': ('status', 'end_time')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    # Fields an admin may edit after submission; bidding state belongs to the ledger
    editable_fields = ('item_name', 'description', 'category', 'image_url', 'end_time')

    def save_model(self, request, obj, form, change):
        if not change:
            super().save_model(request, obj, form, change)
            return

        with AuctionLedger().locked_auction(obj.pk) as locked:
            for name in self.editable_fields:
                setattr(locked, name, getattr(obj, name))
            locked.save(update_fields=list(self.editable_fields) + ['updated_at'])

        # Show the bidding state as committed, not as the form loaded it
        for name in ('current_bid', 'current_bidder_id', 'bid_count', 'status', 'updated_at'):
            setattr(obj, name, getattr(locked, name))

    def get_readonly_fields(self, request, obj=None):
        # Minimum bid is fixed once the auction exists
        if obj:
            return self.readonly_fields + ('min_bid', 'vendor')
        return self.readonly_fields

    def has_change_permission(self, request, obj=None):
        if obj and obj.status in (Auction.REJECTED, Auction.COMPLETED):
            return False
        return super().has_change_permission(request, obj)


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ('id', 'auction', 'bidder', 'amount', 'created_at')
    list_filter = ('created_at', 'auction')
    search_fields = ('auction__item_name', 'bidder__username')
    readonly_fields = ('auction', 'bidder', 'amount', 'created_at')
    date_hierarchy = 'created_at'

    # Bids are append-only and only enter through the bidding endpoint
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
