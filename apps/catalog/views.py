import json

from django.core.exceptions import ValidationError
from django.http import Http404, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from .models import Product, SizeStock
from .services import categories
from .services.club_names import DEFAULT_VOCABULARY, club_label
from .services.listing import cards_from_payload
from .services.pricing import (
    ADULT, KIDS, build_selection, compute_price, wants_badges, wants_name_number,
)
from .services.search import feed_payload, search_payload, suggest_payload


@require_GET
def search(request):
    return JsonResponse(search_payload(request.GET.get('q', '')))


@require_GET
def search_suggestions(request):
    return JsonResponse(suggest_payload(request.GET.get('q', ''), request.GET.get('limit')))


@require_GET
def category_listing(request, slug):
    """One page of a category listing with labels, sorting and page range."""
    try:
        categories.get_category(slug)
    except ValueError:
        raise Http404(f'Unknown category {slug}')

    cards = cards_from_payload(feed_payload())
    listing = categories.build_listing(
        cards,
        category=slug,
        term=request.GET.get('q', ''),
        sort=request.GET.get('sort', categories.SORT_TEAM),
        page=request.GET.get('page', 1),
    )
    return JsonResponse({
        'category': slug,
        'items': [c.as_dict() for c in listing['items']],
        'page': listing['page'],
        'totalPages': listing['total_pages'],
        'total': listing['total'],
        'pagination': listing['range'],
        'vocabularyVersion': DEFAULT_VOCABULARY.version,
    })


@require_GET
def product_detail(request, slug):
    product = get_object_or_404(Product, slug=slug)
    return JsonResponse({
        'id': product.pk,
        'slug': product.slug,
        'name': product.name,
        'team': product.team,
        'clubLabel': club_label(product.team, product.name),
        'basePrice': product.base_price,
        'kidsPriceDelta': product.kids_price_delta,
        'images': product.images,
        'sizes': {
            ADULT: product.stock_by_size(SizeStock.ADULT),
            KIDS: product.stock_by_size(SizeStock.KIDS),
        },
        'optionGroups': product.option_schema(),
    })


@require_POST
def quote(request, slug):
    """Price a configuration: {options, sizeCategory, qty}."""
    product = get_object_or_404(Product, slug=slug)
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)
    if not isinstance(data, dict):
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    size_category = data.get('sizeCategory', ADULT)
    if size_category not in (ADULT, KIDS):
        return JsonResponse({'error': 'Invalid size category'}, status=400)

    try:
        qty = int(data.get('qty', 1))
    except (TypeError, ValueError):
        return JsonResponse({'error': 'Invalid quantity'}, status=400)
    if qty < 1:
        return JsonResponse({'error': 'Quantity must be at least 1.'}, status=400)

    options = data.get('options') or {}
    if not isinstance(options, dict):
        return JsonResponse({'error': 'Invalid options'}, status=400)

    groups = product.option_schema()
    try:
        selection = build_selection(groups, options)
    except ValidationError as e:
        return JsonResponse({'error': e.messages[0]}, status=400)

    price = compute_price(
        product.base_price, groups, selection,
        quantity=qty,
        size_category=size_category,
        kids_price_delta=product.kids_price_delta,
    )
    result = price.as_dict()
    result['showPersonalization'] = wants_name_number(selection)
    result['showBadges'] = wants_badges(selection)
    return JsonResponse(result)
