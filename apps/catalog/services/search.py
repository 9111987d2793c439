import logging

from django.db.models import Q

from apps.catalog.models import Product
from apps.catalog.services.club_names import club_label

logger = logging.getLogger(__name__)

MAX_RESULTS = 100
SUGGEST_DEFAULT_LIMIT = 8
SUGGEST_MAX_LIMIT = 12
SUGGEST_MIN_CHARS = 2


def _to_eur(cents):
    return round(cents / 100, 2)


def search_products(query, limit=MAX_RESULTS):
    """Products matching every whitespace-separated term of ``query``.

    A term matches when it appears in the name, slug, team or description.
    """
    terms = (query or '').split()
    if not terms:
        return Product.objects.none()

    qs = Product.objects.all()
    for term in terms:
        qs = qs.filter(
            Q(name__icontains=term)
            | Q(slug__icontains=term)
            | Q(team__icontains=term)
            | Q(description__icontains=term)
        )
    return qs.order_by('-updated_at')[:limit]


def _product_payload(p):
    return {
        'id': p.pk,
        'name': p.name,
        'slug': p.slug,
        'img': p.main_image,
        'price': _to_eur(p.base_price),
        'team': p.team,
    }


def search_payload(query):
    products = [_product_payload(p) for p in search_products(query)]
    logger.info(f"Search {query!r}: {len(products)} products")
    return {'products': products}


def clamp_limit(raw):
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return SUGGEST_DEFAULT_LIMIT
    return min(max(limit, 1), SUGGEST_MAX_LIMIT)


def suggest_payload(query, limit=None):
    """Autocomplete suggestions; queries under two characters return nothing."""
    query = (query or '').strip()
    if len(query) < SUGGEST_MIN_CHARS:
        return {'items': []}

    items = [
        {
            'id': p.pk,
            'name': p.name,
            'slug': p.slug,
            'price': _to_eur(p.base_price),
            'imageUrl': p.main_image,
            'clubName': club_label(p.team, p.name),
        }
        for p in search_products(query, limit=clamp_limit(limit))
    ]
    return {'items': items}


def feed_payload():
    """Every product in the search result shape, newest first."""
    return [_product_payload(p) for p in Product.objects.order_by('-updated_at')]
