import uuid

from django.contrib.auth.models import User
from django.db import models


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PAID = 'paid', 'Paid'
        SHIPPED = 'shipped', 'Shipped'
        DELIVERED = 'delivered', 'Delivered'
        CANCELLED = 'cancelled', 'Cancelled'

    # Allowed next statuses; delivered and cancelled are final.
    TRANSITIONS = {
        Status.PENDING: (Status.PAID, Status.CANCELLED),
        Status.PAID: (Status.SHIPPED, Status.CANCELLED),
        Status.SHIPPED: (Status.DELIVERED,),
        Status.DELIVERED: (),
        Status.CANCELLED: (),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    session_id = models.CharField(max_length=64, blank=True, db_index=True)
    email = models.EmailField(blank=True)
    full_name = models.CharField(max_length=120, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    currency = models.CharField(max_length=3, default='EUR')
    subtotal = models.PositiveIntegerField(default=0, help_text='Cents, before promotions')
    discount = models.PositiveIntegerField(default=0)
    shipping = models.PositiveIntegerField(default=0)
    total = models.PositiveIntegerField(default=0)
    promo_name = models.CharField(max_length=20, blank=True)
    tracking_code = models.CharField(max_length=80, blank=True)
    tracking_url = models.URLField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Order {self.short_id} ({self.status})"

    @property
    def short_id(self):
        return str(self.id)[:7]

    def can_move_to(self, status):
        return status == self.status or status in self.TRANSITIONS.get(self.status, ())


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(
        'catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items'
    )
    name = models.CharField(max_length=200, blank=True)
    image = models.CharField(max_length=500, blank=True)
    qty = models.PositiveSmallIntegerField(default=1)
    free_qty = models.PositiveSmallIntegerField(default=0)
    unit_price = models.PositiveIntegerField(help_text='Jersey price plus add-ons, in cents')
    total_price = models.PositiveIntegerField()
    # Configuration at checkout time: options, personalization, size.
    snapshot = models.JSONField(null=True, blank=True)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return f"{self.qty} x {self.name or self.product_id}"
