from django.contrib.auth.models import User
from django.db import models


class Cart(models.Model):
    session_id = models.CharField(max_length=64, unique=True)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='carts')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-updated_at']

    def __str__(self):
        return f"Cart {self.session_id[:8]}"


class CartItem(models.Model):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('catalog.Product', on_delete=models.CASCADE, related_name='cart_items')
    qty = models.PositiveSmallIntegerField(default=1)
    unit_price = models.PositiveIntegerField(help_text='Jersey price plus add-ons, in cents')
    total_price = models.PositiveIntegerField(help_text='unit_price * qty, before promotions')
    options = models.JSONField(default=dict, blank=True)
    personalization = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.qty} x {self.product.name}"
