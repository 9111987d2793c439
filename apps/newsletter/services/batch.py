"""Newsletter batch sender.

Sends one personalised email per active subscriber. Every recipient is
dispatched on a worker thread and all outcomes are collected before the
campaign is finalised, so one failing address never stops the others.
There is no automatic retry: re-running the send creates a new campaign
and mails every active subscriber again.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from apps.newsletter.models import NewsletterCampaign, NewsletterSendLog, NewsletterSubscriber
from apps.newsletter.services.email_client import ResendClient
from apps.newsletter.services.rendering import (
    DEFAULT_STYLE, STYLES, blocks_to_text, build_html_email, build_text_email,
    parse_blocks, unsubscribe_url,
)

logger = logging.getLogger(__name__)

MAX_FAILURE_DETAILS = 5
NO_CONFIRMATION = 'Provider did not confirm delivery'


class NewsletterConfigError(Exception):
    pass


@dataclass
class SendOutcome:
    email: str
    ok: bool
    provider_id: str = ''
    error: str = ''


def get_sender_config():
    api_key = getattr(settings, 'RESEND_API_KEY', '')
    sender = getattr(settings, 'NEWSLETTER_FROM', '')
    if not api_key or not sender:
        raise NewsletterConfigError('Missing RESEND_API_KEY or NEWSLETTER_FROM in env.')
    return api_key, sender


def classify_response(email, response):
    """A provider ``error`` or a missing message id both count as failures."""
    if not isinstance(response, dict):
        return SendOutcome(email, False, error=NO_CONFIRMATION)

    error = response.get('error')
    if error:
        if isinstance(error, dict):
            message = error.get('message') or error.get('name') or 'Unknown provider error'
        else:
            message = str(error)
        return SendOutcome(email, False, error=message)

    data = response.get('data')
    provider_id = data.get('id') if isinstance(data, dict) else None
    if not provider_id:
        return SendOutcome(email, False, error=NO_CONFIRMATION)
    return SendOutcome(email, True, provider_id=str(provider_id))


def _failure(error):
    return {'ok': False, 'error': error, 'sent': 0, 'failed': 0, 'total': 0, 'details': []}


def _send_one(client, sender, subject, message, style, blocks, email, token):
    url = unsubscribe_url(token)
    html = build_html_email(subject, message, style, url, blocks=blocks)
    text = build_text_email(message or blocks_to_text(blocks), url)
    return client.send_email(
        sender=sender,
        to=email,
        subject=subject,
        html=html,
        text=text,
        headers={'List-Unsubscribe': f'<{url}>'},
    )


def dispatch(client, sender, subject, message, style, blocks, recipients, max_workers=None):
    """Send to every ``(email, token)`` concurrently and return one outcome each."""
    workers = max(1, min(max_workers or settings.NEWSLETTER_MAX_WORKERS, len(recipients)))
    outcomes = []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(_send_one, client, sender, subject, message, style, blocks, email, token): email
            for email, token in recipients
        }
        for future in as_completed(futures):
            email = futures[future]
            try:
                outcomes.append(classify_response(email, future.result()))
            except Exception as e:
                logger.error(f"Newsletter send to {email} raised: {e}", exc_info=True)
                outcomes.append(SendOutcome(email, False, error=str(e) or e.__class__.__name__))
    return outcomes


def send_newsletter(subject, message='', style=DEFAULT_STYLE, content_json=None, client=None, user=None):
    """Send a newsletter to all active subscribers.

    Returns ``{ok, sent, failed, total, details, campaign_id}``; ``ok`` is
    true only when no recipient failed. Validation, configuration and
    empty-list problems return ``ok=False`` with an ``error`` and send
    nothing.
    """
    subject = (subject or '').strip()
    message = (message or '').strip()
    if style not in STYLES:
        style = DEFAULT_STYLE

    try:
        blocks = parse_blocks(content_json)
    except ValidationError as e:
        return _failure(e.messages[0])

    if not subject or not (message or blocks):
        return _failure('Missing subject or message.')

    try:
        api_key, sender = get_sender_config()
    except NewsletterConfigError as e:
        logger.error(f"Newsletter not sent: {e}")
        return _failure(str(e))

    recipients = list(
        NewsletterSubscriber.objects.active()
        .order_by('-created_at')
        .values_list('email', 'unsub_token')
    )
    if not recipients:
        return _failure('No subscribers yet.')

    client = client or ResendClient(api_key)
    campaign = NewsletterCampaign.objects.create(
        subject=subject,
        style=style,
        message=message,
        content_json=blocks or None,
        html=build_html_email(subject, message, style, unsubscribe_url(''), blocks=blocks),
        created_by=user if user is not None and user.is_authenticated else None,
    )
    campaign.mark_sending(total_recipients=len(recipients))
    logger.info(f"Campaign {campaign.id}: sending '{subject}' to {len(recipients)} subscribers")

    outcomes = dispatch(client, sender, subject, message, style, blocks, recipients)
    sent = sum(1 for o in outcomes if o.ok)
    failed = len(outcomes) - sent

    with transaction.atomic():
        NewsletterSendLog.objects.bulk_create([
            NewsletterSendLog(
                campaign=campaign,
                email=o.email,
                status=NewsletterSendLog.Status.SENT if o.ok else NewsletterSendLog.Status.FAILED,
                provider_id=o.provider_id,
                error=o.error,
            )
            for o in outcomes
        ])
        campaign.mark_finished(sent=sent, failed=failed)

    if failed:
        logger.warning(f"Campaign {campaign.id}: {failed}/{len(outcomes)} sends failed")
    else:
        logger.info(f"Campaign {campaign.id}: all {sent} sends accepted")

    return {
        'ok': failed == 0,
        'sent': sent,
        'failed': failed,
        'total': len(outcomes),
        'details': [f"{o.email}: {o.error}" for o in outcomes if not o.ok][:MAX_FAILURE_DETAILS],
        'campaign_id': str(campaign.id),
    }
