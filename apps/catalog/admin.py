from django.contrib import admin

from .models import Product, SizeStock, OptionGroup, OptionValue


class SizeStockInline(admin.TabularInline):
    model = SizeStock
    extra = 0


class OptionGroupInline(admin.TabularInline):
    model = OptionGroup
    extra = 0
    show_change_link = True


class OptionValueInline(admin.TabularInline):
    model = OptionValue
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'team', 'season', 'base_price', 'kids_price_delta', 'updated_at']
    list_filter = ['season']
    search_fields = ['name', 'slug', 'team']
    readonly_fields = ['created_at', 'updated_at']
    prepopulated_fields = {'slug': ('name',)}
    inlines = [SizeStockInline, OptionGroupInline]


@admin.register(OptionGroup)
class OptionGroupAdmin(admin.ModelAdmin):
    list_display = ['product', 'key', 'label', 'type', 'required', 'position']
    list_filter = ['type', 'required']
    search_fields = ['product__name', 'key', 'label']
    raw_id_fields = ['product']
    inlines = [OptionValueInline]
