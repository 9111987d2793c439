from django.contrib import admin

from .models import NewsletterSubscriber, NewsletterCampaign, NewsletterSendLog


@admin.register(NewsletterSubscriber)
class NewsletterSubscriberAdmin(admin.ModelAdmin):
    list_display = ['email', 'created_at', 'unsubscribed_at']
    list_filter = ['unsubscribed_at']
    search_fields = ['email']
    readonly_fields = ['unsub_token', 'created_at']


class NewsletterSendLogInline(admin.TabularInline):
    model = NewsletterSendLog
    extra = 0
    can_delete = False
    readonly_fields = ['email', 'status', 'provider_id', 'error', 'created_at']


@admin.register(NewsletterCampaign)
class NewsletterCampaignAdmin(admin.ModelAdmin):
    list_display = ['subject', 'style', 'status', 'total_recipients', 'sent_count', 'failed_count', 'created_at']
    list_filter = ['status', 'style']
    search_fields = ['subject']
    readonly_fields = ['id', 'status', 'total_recipients', 'sent_count', 'failed_count', 'created_at', 'sent_at']
    raw_id_fields = ['created_by']
    inlines = [NewsletterSendLogInline]


@admin.register(NewsletterSendLog)
class NewsletterSendLogAdmin(admin.ModelAdmin):
    list_display = ['email', 'campaign', 'status', 'provider_id', 'created_at']
    list_filter = ['status']
    search_fields = ['email', 'provider_id']
    readonly_fields = ['created_at']
    raw_id_fields = ['campaign']
