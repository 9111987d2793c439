import json

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from apps.accounts.access import login_required_json, staff_required
from apps.cart.models import Cart

from .forms import CheckoutForm
from .models import Order
from .services.orders import OrderError, can_view, create_order_from_cart, order_payload, update_status


def _json_body(request):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


@require_POST
def create(request):
    """Place a pending order for the current cart: {email, fullName}."""
    data = _json_body(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    email = data.get('email')
    if not email and request.user.is_authenticated:
        email = request.user.email
    form = CheckoutForm({'email': email or '', 'full_name': data.get('fullName') or ''})
    if not form.is_valid():
        errors = [e for field_errors in form.errors.values() for e in field_errors]
        return JsonResponse({'error': errors[0]}, status=400)

    cart = Cart.objects.filter(session_id=request.cart_session_id).first()
    try:
        order = create_order_from_cart(
            cart,
            email=form.cleaned_data['email'],
            full_name=form.cleaned_data['full_name'],
            user=request.user,
        )
    except OrderError as e:
        return JsonResponse({'error': str(e)}, status=400)
    return JsonResponse({'ok': True, 'order': order_payload(order)}, status=201)


@require_GET
def detail(request, order_id):
    """Owner, the checkout session or staff. Anyone else gets 404."""
    order = get_object_or_404(Order, pk=order_id)
    if not can_view(order, request):
        return JsonResponse({'error': 'Order not found'}, status=404)
    return JsonResponse({'order': order_payload(order)})


@login_required_json
@require_GET
def account_orders(request):
    orders = Order.objects.filter(user=request.user).prefetch_related('items')
    return JsonResponse({'orders': [order_payload(o, include_items=False) for o in orders]})


@staff_required
@require_POST
def update_order_status(request, order_id):
    """Admin fulfilment update: {status, trackingCode, trackingUrl}."""
    order = get_object_or_404(Order, pk=order_id)
    data = _json_body(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    status = data.get('status')
    tracking_code = data.get('trackingCode')
    tracking_url = data.get('trackingUrl')
    if not isinstance(status, str) or any(
        v is not None and not isinstance(v, str) for v in (tracking_code, tracking_url)
    ):
        return JsonResponse({'error': 'Invalid status update'}, status=400)

    try:
        result = update_status(order, status.strip().lower(), tracking_code, tracking_url)
    except OrderError as e:
        return JsonResponse({'error': str(e)}, status=400)
    order.refresh_from_db()
    return JsonResponse({'ok': True, **result, 'order': order_payload(order, include_items=False)})
