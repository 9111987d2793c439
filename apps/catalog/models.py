from django.db import models

from apps.catalog.services.pricing import default_sizes, is_kid_product


class Product(models.Model):
    slug = models.SlugField(max_length=160, unique=True)
    name = models.CharField(max_length=200)
    team = models.CharField(max_length=120, blank=True, default='')
    season = models.CharField(max_length=20, blank=True, default='')
    description = models.TextField(blank=True, default='')
    base_price = models.PositiveIntegerField(help_text='Price in cents')
    images = models.JSONField(default=list, blank=True)
    kids_price_delta = models.IntegerField(null=True, blank=True, help_text='Added to base price for kids sizes')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-updated_at']

    def __str__(self):
        return self.name

    @property
    def main_image(self):
        return self.images[0] if self.images else ''

    @property
    def has_kids_sizes(self):
        return self.sizes.filter(category=SizeStock.KIDS).exists()

    def sizes_for(self, category):
        return list(self.sizes.filter(category=category).order_by('position', 'id'))

    def stock_by_size(self, category):
        """Stock per size label. Without size rows, kid products get the kids
        ladder and everything else the adult one."""
        rows = self.sizes_for(category)
        if rows:
            return {row.size: row.stock for row in rows}
        if (category == SizeStock.KIDS) != is_kid_product(self.name):
            return {}
        return default_sizes(category)

    def option_schema(self):
        """Option groups as plain dicts, in display order."""
        groups = []
        for group in self.option_groups.prefetch_related('values').order_by('position', 'id'):
            groups.append({
                'key': group.key,
                'label': group.label,
                'type': group.type,
                'required': group.required,
                'values': [
                    {'value': v.value, 'label': v.label, 'price_delta': v.price_delta}
                    for v in sorted(group.values.all(), key=lambda v: (v.position, v.id))
                ],
            })
        return groups


class SizeStock(models.Model):
    ADULT = 'adult'
    KIDS = 'kids'
    CATEGORY_CHOICES = [
        (ADULT, 'Adult'),
        (KIDS, 'Kids'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='sizes')
    category = models.CharField(max_length=5, choices=CATEGORY_CHOICES, default=ADULT)
    size = models.CharField(max_length=10)
    stock = models.PositiveIntegerField(default=0)
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ['product', 'category', 'position']
        unique_together = [('product', 'category', 'size')]

    def __str__(self):
        return f"{self.product.slug} {self.category} {self.size} ({self.stock})"


class OptionGroup(models.Model):
    class Type(models.TextChoices):
        SIZE = 'SIZE', 'Size'
        RADIO = 'RADIO', 'Single choice'
        ADDON = 'ADDON', 'Add-on'

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='option_groups')
    key = models.CharField(max_length=40)
    label = models.CharField(max_length=80)
    type = models.CharField(max_length=5, choices=Type.choices)
    required = models.BooleanField(default=False)
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ['product', 'position']
        unique_together = [('product', 'key')]

    def __str__(self):
        return f"{self.product.slug}: {self.label} ({self.type})"


class OptionValue(models.Model):
    group = models.ForeignKey(OptionGroup, on_delete=models.CASCADE, related_name='values')
    value = models.CharField(max_length=60)
    label = models.CharField(max_length=120)
    price_delta = models.IntegerField(default=0, help_text='Cents added when selected')
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ['group', 'position']
        unique_together = [('group', 'value')]

    def __str__(self):
        return f"{self.label} ({self.price_delta:+d})"
