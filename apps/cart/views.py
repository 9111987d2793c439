import json

from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from apps.catalog.models import Product
from apps.catalog.services.pricing import (
    ADULT, KIDS, SIZE, build_selection, cart_options, compute_price,
    personalization_for, validate_for_cart,
)

from .models import Cart, CartItem
from .services.cart import add_to_cart, cart_summary, get_or_create_cart, update_qty


def _current_cart(request):
    return Cart.objects.filter(session_id=request.cart_session_id).first()


@require_POST
def add(request):
    """AJAX endpoint for adding a configured product to the cart."""
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)
    if not isinstance(data, dict):
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        product = Product.objects.filter(pk=int(data.get('productId'))).first()
    except (TypeError, ValueError):
        product = None
    if product is None:
        return JsonResponse({'error': 'Product not found'}, status=404)

    size_category = data.get('sizeCategory', ADULT)
    if size_category not in (ADULT, KIDS):
        return JsonResponse({'error': 'Invalid size category'}, status=400)

    options = data.get('options') or {}
    if not isinstance(options, dict):
        return JsonResponse({'error': 'Invalid options'}, status=400)
    options = dict(options)
    size = data.get('size') or options.pop('size', None)
    options.pop('size', None)

    groups = product.option_schema()
    try:
        qty = validate_for_cart(size, product.stock_by_size(size_category), data.get('qty', 1))
        # The size group carries its own price delta.
        options.update({g['key']: size for g in groups if g['type'] == SIZE})
        selection = build_selection(groups, options)
    except ValidationError as e:
        return JsonResponse({'error': e.messages[0]}, status=400)

    if qty > settings.CART_MAX_QTY:
        return JsonResponse({'error': f'Quantity must be at most {settings.CART_MAX_QTY}.'}, status=400)

    price = compute_price(
        product.base_price, groups, selection,
        size_category=size_category,
        kids_price_delta=product.kids_price_delta,
    )
    personal = data.get('personalization')
    if not isinstance(personal, dict):
        personal = {}
    line_options = cart_options(selection)
    line_options['size'] = size
    line_options['sizeCategory'] = size_category

    cart = get_or_create_cart(request.cart_session_id, request.user)
    item = add_to_cart(
        cart, product, qty,
        unit_price=price.unit_price + price.addons_total,
        options=line_options,
        personalization=personalization_for(selection, personal.get('name'), personal.get('number')),
    )
    return JsonResponse({
        'ok': True,
        'itemId': item.pk,
        'count': cart.items.count(),
        'lineTotal': item.unit_price * qty,
    })


@require_GET
def summary(request):
    return JsonResponse(cart_summary(_current_cart(request)))


@require_POST
def remove_item(request, item_id):
    item = get_object_or_404(CartItem, pk=item_id, cart__session_id=request.cart_session_id)
    item.delete()
    return JsonResponse({'success': True})


@require_POST
def change_qty(request, item_id):
    item = get_object_or_404(CartItem, pk=item_id, cart__session_id=request.cart_session_id)
    try:
        data = json.loads(request.body)
        qty = int(data.get('qty'))
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError):
        return JsonResponse({'error': 'Invalid quantity'}, status=400)
    if qty < 1:
        return JsonResponse({'error': 'Quantity must be at least 1.'}, status=400)

    update_qty(item, qty)
    return JsonResponse({'success': True, 'qty': item.qty, 'totalPrice': item.total_price})
