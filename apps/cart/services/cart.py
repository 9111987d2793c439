"""Cart mutations and the promotion-aware summary.

Line prices are stored without promotions; promotions are only applied
when the summary is computed.
"""

import logging
import re

from django.conf import settings
from django.db import transaction

from apps.cart.models import Cart, CartItem
from apps.catalog.services.pricing import sanitize_personal_name

logger = logging.getLogger(__name__)

MAX_FREE_ITEMS_PER_ORDER = 2
SHIPPING_CENTS = 500
PERSONAL_NUMBER_MAX = 3

PROMO_NONE = 'NONE'
PROMO_BUY_1_GET_1 = 'BUY_1_GET_1'
PROMO_BUY_2_GET_3 = 'BUY_2_GET_3'
PROMO_BUY_3_GET_5 = 'BUY_3_GET_5'

FREE_UNITS = {
    PROMO_NONE: 0,
    PROMO_BUY_1_GET_1: 1,
    PROMO_BUY_2_GET_3: 1,
    PROMO_BUY_3_GET_5: 2,
}
FREE_SHIPPING_TIERS = (PROMO_BUY_2_GET_3, PROMO_BUY_3_GET_5)


def get_or_create_cart(session_id, user=None):
    cart, created = Cart.objects.get_or_create(session_id=session_id)
    if user is not None and user.is_authenticated and cart.user_id is None:
        cart.user = user
        cart.save(update_fields=['user', 'updated_at'])
    if created:
        logger.info(f"Created cart {session_id[:8]}")
    return cart


def normalize_options(options):
    """Drop empty values and order keys so identical configurations compare equal."""
    return {k: str(v) for k, v in sorted((options or {}).items()) if v not in (None, '')}


def clean_personalization(personalization):
    if not personalization:
        return None
    name = sanitize_personal_name(str(personalization.get('name') or '').strip()).strip() or None
    number = re.sub(r'[^0-9]', '', str(personalization.get('number') or ''))[:PERSONAL_NUMBER_MAX] or None
    if not name and not number:
        return None
    return {'name': name, 'number': number}


def add_to_cart(cart, product, qty, unit_price, options=None, personalization=None):
    """Add a configured product, merging into an identical existing line.

    Identical means same product, same options and same personalization.
    Merged quantities are capped at CART_MAX_QTY.
    """
    max_qty = settings.CART_MAX_QTY
    options = normalize_options(options)
    personalization = clean_personalization(personalization)
    if personalization:
        if personalization['name']:
            options['custName'] = personalization['name']
        if personalization['number']:
            options['custNumber'] = personalization['number']
        options = normalize_options(options)

    with transaction.atomic():
        siblings = (
            CartItem.objects.select_for_update()
            .filter(cart=cart, product=product)
            .order_by('created_at', 'id')
        )
        existing = next(
            (it for it in siblings
             if (it.options or {}) == options and (it.personalization or None) == personalization),
            None,
        )
        if existing:
            existing.qty = min(max_qty, existing.qty + qty)
            existing.unit_price = unit_price
            existing.total_price = unit_price * existing.qty
            existing.save(update_fields=['qty', 'unit_price', 'total_price'])
            item = existing
        else:
            item = CartItem.objects.create(
                cart=cart,
                product=product,
                qty=min(max_qty, qty),
                unit_price=unit_price,
                total_price=unit_price * min(max_qty, qty),
                options=options,
                personalization=personalization,
            )
        cart.save(update_fields=['updated_at'])

    logger.info(f"Cart {cart.session_id[:8]}: {product.slug} x{qty} (line {item.pk} now {item.qty})")
    return item


def update_qty(item, qty):
    item.qty = min(settings.CART_MAX_QTY, int(qty))
    item.total_price = item.unit_price * item.qty
    item.save(update_fields=['qty', 'total_price'])
    return item


def promotion_tier(total_qty):
    if total_qty >= 5:
        return PROMO_BUY_3_GET_5
    if total_qty >= 3:
        return PROMO_BUY_2_GET_3
    if total_qty >= 2:
        return PROMO_BUY_1_GET_1
    return PROMO_NONE


def apply_promotions(lines):
    """Give away the cheapest units for the quantity tier.

    ``lines`` is a list of ``(unit_cents, qty)``. Returns the tier, free units
    per line, total free units and shipping.
    """
    total_qty = sum(max(0, qty) for _, qty in lines)
    tier = promotion_tier(total_qty)
    shipping = 0 if tier in FREE_SHIPPING_TIERS else SHIPPING_CENTS
    free_left = min(FREE_UNITS[tier], MAX_FREE_ITEMS_PER_ORDER)

    units = []
    for index, (unit_cents, qty) in enumerate(lines):
        units.extend([(unit_cents, index)] * max(0, qty))
    units.sort()

    free_by_line = [0] * len(lines)
    for unit_cents, index in units[:free_left]:
        free_by_line[index] += 1

    return {
        'promo_name': tier,
        'free_by_line': free_by_line,
        'free_units': sum(free_by_line),
        'shipping': shipping,
    }


def cart_summary(cart):
    if cart is None:
        items = []
    else:
        items = list(cart.items.select_related('product'))
    if not items:
        return {
            'count': 0,
            'subtotal': 0,
            'discount': 0,
            'shipping': 0,
            'total': 0,
            'promotion': {'promoName': PROMO_NONE, 'freeUnitsCount': 0, 'hasPromotion': False},
            'items': [],
        }

    lines = [(max(0, item.unit_price), max(0, item.qty)) for item in items]
    promo = apply_promotions(lines)
    subtotal = sum(price * qty for price, qty in lines)
    payable = sum(price * (qty - free) for (price, qty), free in zip(lines, promo['free_by_line']))
    discount = max(0, subtotal - payable)

    return {
        'count': len(items),
        'subtotal': subtotal,
        'discount': discount,
        'shipping': promo['shipping'],
        'total': payable + promo['shipping'],
        'promotion': {
            'promoName': promo['promo_name'],
            'freeUnitsCount': promo['free_units'],
            'hasPromotion': promo['promo_name'] != PROMO_NONE and promo['free_units'] > 0,
        },
        'items': [
            {
                'id': item.pk,
                'productId': item.product_id,
                'name': item.product.name,
                'image': item.product.main_image,
                'qty': item.qty,
                'unitPrice': item.unit_price,
                'totalPrice': item.total_price,
                'freeQty': free,
                'options': item.options,
                'personalization': item.personalization,
            }
            for item, free in zip(items, promo['free_by_line'])
        ],
    }
