import secrets
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


def generate_unsub_token():
    return secrets.token_urlsafe(24)


class SubscriberQuerySet(models.QuerySet):
    def active(self):
        return self.filter(unsubscribed_at__isnull=True)


class NewsletterSubscriber(models.Model):
    email = models.EmailField(unique=True)
    unsub_token = models.CharField(max_length=64, unique=True, default=generate_unsub_token, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    unsubscribed_at = models.DateTimeField(null=True, blank=True)

    objects = SubscriberQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.email

    @property
    def is_active(self):
        return self.unsubscribed_at is None


class NewsletterCampaign(models.Model):
    class Style(models.TextChoices):
        SIMPLE = 'simple', 'Simple'
        PRETTY = 'pretty', 'Pretty'

    class Status(models.TextChoices):
        DRAFT = 'DRAFT', 'Draft'
        SENDING = 'SENDING', 'Sending'
        SENT = 'SENT', 'Sent'
        FAILED = 'FAILED', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    subject = models.CharField(max_length=200)
    style = models.CharField(max_length=6, choices=Style.choices, default=Style.SIMPLE)
    message = models.TextField(blank=True, default='')
    content_json = models.JSONField(null=True, blank=True)
    html = models.TextField(blank=True, default='')
    status = models.CharField(max_length=7, choices=Status.choices, default=Status.DRAFT)
    total_recipients = models.PositiveIntegerField(default=0)
    sent_count = models.PositiveIntegerField(default=0)
    failed_count = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='newsletter_campaigns',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.subject} ({self.get_status_display()})'

    def mark_sending(self, total_recipients):
        if self.status != self.Status.DRAFT:
            raise ValueError(f'Campaign {self.id} cannot start sending from {self.status}')
        self.status = self.Status.SENDING
        self.total_recipients = total_recipients
        self.save(update_fields=['status', 'total_recipients'])

    def mark_finished(self, sent, failed):
        """SENDING -> SENT when nothing failed, FAILED otherwise."""
        if self.status != self.Status.SENDING:
            raise ValueError(f'Campaign {self.id} is not sending (status {self.status})')
        self.sent_count = sent
        self.failed_count = failed
        self.status = self.Status.SENT if failed == 0 else self.Status.FAILED
        self.sent_at = timezone.now()
        self.save(update_fields=['sent_count', 'failed_count', 'status', 'sent_at'])


class NewsletterSendLog(models.Model):
    class Status(models.TextChoices):
        SENT = 'SENT', 'Sent'
        FAILED = 'FAILED', 'Failed'

    campaign = models.ForeignKey(NewsletterCampaign, on_delete=models.CASCADE, related_name='logs')
    email = models.EmailField()
    status = models.CharField(max_length=6, choices=Status.choices)
    provider_id = models.CharField(max_length=100, blank=True, default='')
    error = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.email} {self.status}'
