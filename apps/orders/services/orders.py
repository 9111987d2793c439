"""Checkout snapshots, order payloads and fulfilment updates.

An order copies everything it needs from the cart at checkout time, so
later catalog edits never change what a customer bought. Item snapshots
written by older checkouts are not always well formed; reading them
degrades to defaults instead of failing the page.
"""

import json
import logging

from django.core.exceptions import ValidationError
from django.core.validators import URLValidator
from django.db import transaction
from django.template.loader import render_to_string

from apps.cart.models import Cart
from apps.cart.services.cart import PROMO_NONE, cart_summary
from apps.catalog.services.listing import FALLBACK_IMAGE, FALLBACK_NAME
from apps.newsletter.services.batch import NewsletterConfigError, classify_response, get_sender_config
from apps.newsletter.services.email_client import ResendClient
from apps.newsletter.services.rendering import BRAND
from apps.orders.models import Order, OrderItem

logger = logging.getLogger(__name__)

SNAPSHOT_WARNING = 'Some item details could not be loaded.'


class OrderError(Exception):
    pass


def create_order_from_cart(cart, email='', full_name='', user=None):
    """Turn the cart into a pending order and empty the cart.

    Totals come from the promotion-aware cart summary. Raises OrderError
    when the cart has no items.
    """
    if cart is None:
        raise OrderError('Your cart is empty.')

    with transaction.atomic():
        cart = Cart.objects.select_for_update().get(pk=cart.pk)
        summary = cart_summary(cart)
        if not summary['items']:
            raise OrderError('Your cart is empty.')

        promo_name = summary['promotion']['promoName']
        order = Order.objects.create(
            user=user if user is not None and user.is_authenticated else None,
            session_id=cart.session_id,
            email=email,
            full_name=full_name,
            subtotal=summary['subtotal'],
            discount=summary['discount'],
            shipping=summary['shipping'],
            total=summary['total'],
            promo_name='' if promo_name == PROMO_NONE else promo_name,
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product_id=line['productId'],
                name=line['name'],
                image=line['image'] or '',
                qty=line['qty'],
                free_qty=line['freeQty'],
                unit_price=line['unitPrice'],
                total_price=line['totalPrice'],
                snapshot={
                    'name': line['name'],
                    'image': line['image'] or '',
                    'options': line['options'] or {},
                    'personalization': line['personalization'],
                },
            )
            for line in summary['items']
        ])
        cart.items.all().delete()
        cart.save(update_fields=['updated_at'])

    logger.info(f"Order {order.short_id} created from cart {cart.session_id[:8]}: "
                f"{len(summary['items'])} lines, total {order.total}")
    return order


def parse_snapshot(raw):
    """Return ``(snapshot, readable)``.

    Accepts a dict, or a JSON string holding one (older rows were stored
    double encoded). Anything else gives ``({}, False)``. A missing
    snapshot is not an error.
    """
    if raw in (None, ''):
        return {}, True
    if isinstance(raw, dict):
        return raw, True
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {}, False
        if isinstance(parsed, dict):
            return parsed, True
    return {}, False


def _text(value):
    if isinstance(value, str):
        return value.strip()
    return ''


def item_payload(item):
    snapshot, readable = parse_snapshot(item.snapshot)
    if not readable:
        logger.warning(f"Order {item.order_id}: unreadable snapshot on item {item.pk}")

    product = item.product
    name = _text(item.name) or _text(snapshot.get('name')) or (product.name if product else '') or FALLBACK_NAME
    image = (_text(item.image) or _text(snapshot.get('image'))
             or (product.main_image if product else '') or FALLBACK_IMAGE)
    options = snapshot.get('options')
    personalization = snapshot.get('personalization')

    return {
        'id': item.pk,
        'productId': item.product_id,
        'name': name,
        'image': image,
        'qty': item.qty,
        'freeQty': item.free_qty,
        'unitPrice': item.unit_price,
        'totalPrice': item.total_price,
        'options': options if isinstance(options, dict) else {},
        'personalization': personalization if isinstance(personalization, dict) else None,
        'snapshotOk': readable,
    }


def order_payload(order, include_items=True):
    payload = {
        'id': str(order.id),
        'shortId': order.short_id,
        'createdAt': order.created_at.isoformat(),
        'status': order.status,
        'currency': order.currency,
        'subtotal': order.subtotal,
        'discount': order.discount,
        'shipping': order.shipping,
        'total': order.total,
        'promoName': order.promo_name or PROMO_NONE,
        'trackingCode': order.tracking_code or None,
        'trackingUrl': order.tracking_url or None,
        'itemsCount': order.items.count(),
    }
    if include_items:
        items = [item_payload(item) for item in order.items.select_related('product')]
        payload['items'] = items
        payload['warning'] = None if all(i['snapshotOk'] for i in items) else SNAPSHOT_WARNING
    return payload


def can_view(order, request):
    user = request.user
    if user.is_authenticated and (user.is_staff or order.user_id == user.pk):
        return True
    return bool(order.session_id) and order.session_id == request.cart_session_id


def update_status(order, status, tracking_code=None, tracking_url=None, client=None):
    """Move an order along its fulfilment flow and tell the customer.

    ``tracking_code`` / ``tracking_url`` left as None keep their current
    values. Raises OrderError for unknown statuses, disallowed transitions
    and malformed tracking URLs. Returns ``{changed, emailed}``.
    """
    if status not in Order.Status.values:
        raise OrderError(f'Unknown status "{status}".')

    if tracking_url:
        try:
            URLValidator(schemes=['http', 'https'])(tracking_url)
        except ValidationError:
            raise OrderError('Tracking URL must be an http(s) link.')

    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        if not locked.can_move_to(status):
            raise OrderError(f'Cannot move an order from {locked.status} to {status}.')

        before = (locked.status, locked.tracking_code, locked.tracking_url)
        locked.status = status
        if tracking_code is not None:
            locked.tracking_code = tracking_code.strip()
        if tracking_url is not None:
            locked.tracking_url = tracking_url.strip()
        changed = before != (locked.status, locked.tracking_code, locked.tracking_url)
        if changed:
            locked.save(update_fields=['status', 'tracking_code', 'tracking_url', 'updated_at'])

    order.refresh_from_db()
    if not changed:
        return {'changed': False, 'emailed': False}

    logger.info(f"Order {order.short_id}: {before[0]} -> {order.status}")
    return {'changed': True, 'emailed': notify_customer(order, client=client)}


def notify_customer(order, client=None):
    """Fulfilment email for the order's current status. Never raises."""
    if not order.email:
        logger.info(f"Order {order.short_id}: no customer email, update not sent")
        return False
    try:
        api_key, sender = get_sender_config()
    except NewsletterConfigError as e:
        logger.warning(f"Order {order.short_id}: update not sent: {e}")
        return False

    client = client or ResendClient(api_key)
    subject = f"{BRAND} order {order.short_id}: {order.get_status_display()}"
    html = render_to_string('orders/status_update.html', {
        'order': order,
        'brand': BRAND,
        'name': order.full_name,
    })
    text = f"Your order {order.short_id} is now {order.get_status_display().lower()}."
    if order.tracking_code:
        text += f"\nTracking code: {order.tracking_code}"
    if order.tracking_url:
        text += f"\nTrack it here: {order.tracking_url}"

    outcome = classify_response(order.email, client.send_email(sender, order.email, subject, html, text=text))
    if not outcome.ok:
        logger.warning(f"Order {order.short_id}: update email to {order.email} failed: {outcome.error}")
    return outcome.ok
