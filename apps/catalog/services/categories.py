"""Category membership, sorting and pagination for product listings.

Membership is decided from the product name with keyword include/exclude
rules. Every listing page goes through ``build_listing`` so that labels,
sorting and paging behave the same everywhere.
"""

import math
import random
import re

from django.conf import settings

SORT_TEAM = 'team'
SORT_PRICE_ASC = 'price-asc'
SORT_PRICE_DESC = 'price-desc'
SORT_RANDOM = 'random'
SORTS = (SORT_TEAM, SORT_PRICE_ASC, SORT_PRICE_DESC, SORT_RANDOM)

_JERSEY_EXCLUDES = ('SET', 'SHORTS', 'TRACKSUIT', 'CROP TOP', 'KIDS KIT', 'BABY', 'INFANT', ' KIT')


def _name(card):
    return (card.name or '').upper()


def _has_any(text, terms):
    return any(term in text for term in terms)


def is_adult(card):
    n = _name(card)
    if not n:
        return False
    return 'KID' not in n and 'CROP TOP' not in n


def is_kids_kit(card):
    n = _name(card)
    if not n:
        return False
    mentions_kids = _has_any(n, ('KIDS', "KID'S", 'KID ', 'YOUTH', 'JUNIOR', 'CHILD', 'BOYS', 'GIRLS', 'MINI'))
    mentions_baby = _has_any(n, ('BABY', 'INFANT', 'TODDLER'))
    if not mentions_kids and not mentions_baby:
        return False
    if not _has_any(n, (' KIT', 'FULL KIT', 'SET')):
        return False
    if _has_any(n, ('ADULT', "MEN'S", 'MENS', "WOMEN'S", 'WOMENS')):
        return False
    if _has_any(n, ('JERSEY ONLY', 'SHORTS ONLY', 'SOCKS ONLY', 'SCARF', 'BALL', 'POSTER')):
        return False
    return True


def is_standard_jersey(card):
    n = _name(card)
    if not n:
        return False
    if 'PLAYER VERSION' in n or 'LONG SLEEVE' in n:
        return False
    return not _has_any(n, _JERSEY_EXCLUDES)


def is_player_version_jersey(card):
    n = _name(card)
    if 'PLAYER VERSION' not in n:
        return False
    if 'LONG SLEEVE' in n or 'RETRO' in n:
        return False
    return not _has_any(n, _JERSEY_EXCLUDES)


def is_pre_match_jersey(card):
    n = _name(card)
    if not _has_any(n, ('PRE-MATCH', 'PRE MATCH', 'PREMATCH', 'WARM-UP', 'WARM UP', 'WARMUP')):
        return False
    if _has_any(n, ('SHORTS', 'TRACKSUIT', 'CROP TOP', 'SCARF', 'BALL', 'POSTER',
                    'KIDS KIT', 'BABY', 'INFANT', 'FULL KIT', 'KIT SET',
                    'JERSEY + SHORTS', 'WITH SHORTS')):
        return False
    if ' KIT' in n and not ('JERSEY' in n or 'TOP' in n):
        return False
    return True


def is_retro_long_sleeve_jersey(card):
    n = _name(card)
    if 'RETRO' not in n:
        return False
    long_sleeve = ('LONG SLEEVE' in n or 'LONG-SLEEVE' in n
                   or re.search(r'\bL/S\b', n) or re.search(r'\bLS\b', n))
    if not long_sleeve:
        return False
    return not _has_any(n, _JERSEY_EXCLUDES)


def is_training_sleeveless_set(card):
    n = _name(card)
    if not _has_any(n, ('SLEEVELESS', 'TANK', 'VEST')):
        return False
    has_set_parts = (
        _has_any(n, ('SHORTS', ' SLEEVELESS SET', ' TRAINING SET', ' SET ', ' KIT'))
        or n.endswith(' SET')
    )
    if not has_set_parts:
        return False
    return not _has_any(n, ('TRACKSUIT', 'HOODIE', 'JACKET', 'SCARF', 'BALL', 'POSTER',
                            'KIDS', 'BABY', 'INFANT'))


def is_current_season(card):
    n = _name(card)
    return '25/26' in n and 'PLAYER VERSION' not in n and 'RETRO' not in n


_CATEGORIES = {
    'all': lambda card: True,
    'adult': is_adult,
    'kids-kits': is_kids_kit,
    'jerseys': is_standard_jersey,
    'player-version-jerseys': is_player_version_jersey,
    'pre-match-jerseys': is_pre_match_jersey,
    'retro-long-sleeve-jerseys': is_retro_long_sleeve_jersey,
    'training-sleeveless-sets': is_training_sleeveless_set,
    'current-season-25-26': is_current_season,
}


def get_category(slug):
    """Look up a category membership predicate by slug."""
    predicate = _CATEGORIES.get(slug)
    if predicate is None:
        raise ValueError(f"No category registered for {slug}")
    return predicate


def category_slugs():
    return list(_CATEGORIES)


def filter_cards(cards, term):
    term = (term or '').strip().upper()
    if not term:
        return list(cards)
    return [c for c in cards if term in (c.name or '').upper() or term in (c.team or '').upper()]


def sort_cards(cards, sort=SORT_TEAM, rng=None):
    cards = list(cards)
    if sort == SORT_RANDOM:
        (rng or random).shuffle(cards)
        return cards
    if sort in (SORT_PRICE_ASC, SORT_PRICE_DESC):
        priced = [c for c in cards if c.price_cents is not None]
        unpriced = [c for c in cards if c.price_cents is None]
        priced.sort(key=lambda c: c.price_cents, reverse=(sort == SORT_PRICE_DESC))
        return priced + unpriced
    return sorted(cards, key=lambda c: (c.club_label.upper(), c.name or ''))


def pagination_range(current, total):
    """Page numbers with 'dots' gaps, e.g. [1, 'dots', 4, 5, 6, 'dots', 10]."""
    if total <= 5:
        return list(range(1, total + 1))

    left = max(current - 1, 2)
    right = min(current + 1, total - 1)
    pages = [1]
    if left > 2:
        pages.append('dots')
    pages.extend(range(left, right + 1))
    if right < total - 1:
        pages.append('dots')
    pages.append(total)
    return pages


def paginate(cards, page, page_size=None):
    page_size = page_size or settings.CATALOG_PAGE_SIZE
    total_pages = max(1, math.ceil(len(cards) / page_size))
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    return {
        'items': cards[start:start + page_size],
        'page': page,
        'total_pages': total_pages,
        'total': len(cards),
        'range': pagination_range(page, total_pages),
    }


def build_listing(cards, category='all', term='', sort=SORT_TEAM, page=1, page_size=None):
    predicate = get_category(category)
    if sort not in SORTS:
        sort = SORT_TEAM
    members = [c for c in cards if predicate(c)]
    return paginate(sort_cards(filter_cards(members, term), sort), page, page_size)
