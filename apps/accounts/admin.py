from django.contrib import admin
from .models import CustomerProfile


@admin.register(CustomerProfile)
class CustomerProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'display_name', 'updated_at']
    search_fields = ['user__username', 'user__email', 'display_name']
