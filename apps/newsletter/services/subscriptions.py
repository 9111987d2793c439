import logging

from django.utils import timezone

from apps.newsletter.models import NewsletterSubscriber

logger = logging.getLogger(__name__)


def normalize_email(email):
    return str(email or '').strip().lower()


def subscribe(email):
    """Create a subscriber, or re-activate one that unsubscribed earlier.

    The unsubscribe token is kept for the subscriber's whole lifetime.
    """
    email = normalize_email(email)
    subscriber, created = NewsletterSubscriber.objects.get_or_create(email=email)
    if not created and subscriber.unsubscribed_at is not None:
        subscriber.unsubscribed_at = None
        subscriber.save(update_fields=['unsubscribed_at'])
        logger.info(f"Newsletter re-subscribe: {email}")
    elif created:
        logger.info(f"Newsletter subscribe: {email}")
    return subscriber


def unsubscribe(token):
    """Mark the subscriber holding ``token`` as unsubscribed. Returns rows changed."""
    updated = NewsletterSubscriber.objects.active().filter(unsub_token=token).update(
        unsubscribed_at=timezone.now(),
    )
    if updated:
        logger.info(f"Newsletter unsubscribe via token {token[:6]}...")
    return updated
