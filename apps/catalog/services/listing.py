"""Normalize product payloads into the one card shape listings work with.

Search results have come from several generations of the product API, so
names, images, prices and teams show up under different keys. Everything
is mapped here, once, at the boundary.
"""

import logging
import math
from dataclasses import dataclass

from apps.catalog.services.club_names import club_label

logger = logging.getLogger(__name__)

FALLBACK_NAME = 'Product'
FALLBACK_IMAGE = '/static/images/placeholder-jersey.png'

NAME_KEYS = ('name', 'title', 'productName', 'fullName')
TEAM_KEYS = ('team', 'club', 'clubName', 'teamName', 'nationalTeam')
ID_KEYS = ('id', 'productId', '_id', 'slug')
SLUG_KEYS = ('slug', 'handle')
IMAGE_KEYS = (
    'img', 'image', 'imageUrl', 'imageURL', 'mainImage', 'mainImageUrl',
    'mainImageURL', 'thumbnail', 'thumbnailUrl', 'coverImage', 'coverImageUrl',
    'cardImage', 'cardImageUrl', 'listImage', 'listImageUrl', 'gridImage',
    'gridImageUrl', 'heroImage', 'heroImageUrl', 'primaryImage',
    'primaryImageUrl', 'picture', 'pictureUrl', 'photo', 'photoUrl',
)

# Current price (cents) -> compare-at price (cents)
SALE_MAP = {
    2999: 7000,
    3499: 10000,
    3999: 12000,
    4499: 15000,
    4999: 16500,
    5999: 20000,
    6999: 23000,
}


@dataclass
class ProductCard:
    id: object
    name: str
    slug: str = ''
    img: str = FALLBACK_IMAGE
    price_cents: int = None
    team: str = ''
    club_label: str = ''
    sale: dict = None

    def as_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'img': self.img,
            'priceCents': self.price_cents,
            'team': self.team,
            'clubLabel': self.club_label,
            'sale': self.sale,
        }


def _first(raw, keys):
    for key in keys:
        value = raw.get(key)
        if value not in (None, ''):
            return value
    return None


def _number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    # inf and nan have no cent value
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _first_url(items):
    if not isinstance(items, list) or not items:
        return None
    head = items[0]
    if isinstance(head, dict):
        return head.get('url') or None
    if isinstance(head, str):
        return head or None
    return None


def image_from_payload(raw):
    image = _first(raw, IMAGE_KEYS)
    if image is None:
        image = (_first_url(raw.get('imageUrls'))
                 or _first_url(raw.get('images'))
                 or _first_url(raw.get('gallery')))
    return str(image) if image else None


def price_cents_from_payload(raw):
    """Price in cents, or None.

    ``price`` and ``currentPrice`` are euros. ``basePrice`` is cents when it
    is an integer above 200, euros otherwise. ``priceCents`` is cents.
    """
    for key in ('price', 'currentPrice'):
        value = _number(raw.get(key))
        if value is not None:
            return int(round(value * 100))

    value = _number(raw.get('basePrice'))
    if value is not None:
        if float(value).is_integer() and value > 200:
            return int(value)
        return int(round(value * 100))

    value = _number(raw.get('priceCents'))
    if value is not None:
        return int(round(value))
    return None


def sale_for(price_cents):
    """Compare-at price and discount percentage for promo price points."""
    if price_cents is None:
        return None
    old = SALE_MAP.get(price_cents)
    if not old:
        return None
    pct = int(round((1 - price_cents / old) * 100))
    return {'compareAtCents': old, 'pct': pct}


def card_from_payload(raw):
    """Map one loosely shaped product payload to a ProductCard."""
    if not isinstance(raw, dict):
        logger.warning(f"Skipping product payload of type {type(raw).__name__}")
        return None

    name = _first(raw, NAME_KEYS)
    if name is None:
        logger.warning(f"Product payload without a name: id={raw.get('id')!r}")
        name = FALLBACK_NAME
    name = str(name)

    team = _first(raw, TEAM_KEYS)
    team = str(team) if team is not None else ''
    price_cents = price_cents_from_payload(raw)
    identifier = _first(raw, ID_KEYS)

    return ProductCard(
        id=identifier if identifier is not None else name,
        name=name,
        slug=str(_first(raw, SLUG_KEYS) or ''),
        img=image_from_payload(raw) or FALLBACK_IMAGE,
        price_cents=price_cents,
        team=team,
        club_label=club_label(team, name),
        sale=sale_for(price_cents),
    )


def cards_from_payload(items):
    cards = []
    for raw in items or []:
        card = card_from_payload(raw)
        if card is not None:
            cards.append(card)
    return cards
