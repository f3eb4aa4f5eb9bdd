from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class Auction(models.Model):
    PENDING = 'pending'
    ACTIVE = 'active'
    REJECTED = 'rejected'
    COMPLETED = 'completed'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (ACTIVE, 'Active'),
        (REJECTED, 'Rejected'),
        (COMPLETED, 'Completed'),
    )

    # Admin workflow moves; rejected and completed are terminal
    TRANSITIONS = {
        PENDING: (ACTIVE, REJECTED),
        ACTIVE: (COMPLETED,),
        REJECTED: (),
        COMPLETED: (),
    }

    item_name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    image_url = models.URLField(max_length=500, blank=True)
    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='auctions_submitted'
    )
    min_bid = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    current_bid = models.DecimalField(max_digits=12, decimal_places=2)
    current_bidder = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='auctions_leading'
    )
    bid_count = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    end_time = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='auctions_au_status_4a5d1e_idx'),
            models.Index(fields=['end_time'], name='auctions_au_end_tim_9b2c7f_idx'),
        ]

    def __str__(self):
        return f"{self.item_name} (Status: {self.status})"

    def save(self, *args, **kwargs):
        # Bidding starts from the minimum bid
        if not self.pk and self.current_bid is None:
            self.current_bid = self.min_bid
        super().save(*args, **kwargs)

    def is_open(self, now=None):
        now = now or timezone.now()
        return self.status == self.ACTIVE and now < self.end_time

    def can_transition(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, ())

    @property
    def highest_bid(self):
        return self.bids.order_by('-amount').first()


class Bid(models.Model):
    auction = models.ForeignKey(Auction, on_delete=models.PROTECT, related_name='bids')
    bidder = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='bids'
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['auction', 'amount'], name='auctions_bi_auction_3e8f2a_idx'),
            models.Index(fields=['bidder'], name='auctions_bi_bidder__7c1d4b_idx'),
        ]

    def __str__(self):
        return f"Bid of ${self.amount} by {self.bidder_id} on auction {self.auction_id}"

    def save(self, *args, **kwargs):
        # Bids are append-only
        if not self._state.adding:
            raise ValueError("Bids cannot be modified once placed")
        super().save(*args, **kwargs)
