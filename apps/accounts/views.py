import json
import logging
import secrets
import time

from django.conf import settings
from django.contrib.auth import update_session_auth_hash
from django.core.files.storage import default_storage
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST
from PIL import Image, UnidentifiedImageError

from .access import login_required_json
from .forms import PasswordChangeForm, ProfileForm
from .models import CustomerProfile

logger = logging.getLogger(__name__)

UPLOAD_DIR = 'uploads'
IMAGE_EXTENSIONS = {
    'JPEG': 'jpg',
    'PNG': 'png',
    'GIF': 'gif',
    'WEBP': 'webp',
}


def _json_body(request):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _first_error(form):
    errors = list(form.non_field_errors())
    for field_errors in form.errors.values():
        errors.extend(field_errors)
    return errors[0] if errors else 'Invalid data'


@login_required_json
@require_http_methods(['PATCH'])
def profile(request):
    data = _json_body(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    form = ProfileForm(data)
    if not form.is_valid():
        return JsonResponse({'error': _first_error(form)}, status=400)

    customer, _ = CustomerProfile.objects.get_or_create(user=request.user)
    form.apply(customer)
    return JsonResponse({'ok': True, 'user': customer.as_dict()})


@login_required_json
@require_http_methods(['PATCH'])
def password(request):
    data = _json_body(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    form = PasswordChangeForm(request.user, data)
    if not form.is_valid():
        if 'newPassword' in form.errors:
            return JsonResponse({'error': form.errors['newPassword'][0]}, status=400)
        return JsonResponse({'error': _first_error(form)}, status=400)

    user = form.save()
    update_session_auth_hash(request, user)
    logger.info(f"Password changed for user {user.pk}")
    return JsonResponse({'ok': True})


def _image_extension(uploaded):
    """Return the file extension for a real image upload, or None."""
    try:
        img = Image.open(uploaded)
        img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        return None
    finally:
        uploaded.seek(0)
    return IMAGE_EXTENSIONS.get(img.format)


@login_required_json
@require_POST
def upload(request):
    uploaded = request.FILES.get('file')
    if uploaded is None:
        return JsonResponse({'error': 'No file provided'}, status=400)
    if uploaded.size > settings.UPLOAD_MAX_BYTES:
        return JsonResponse({'error': 'File too large'}, status=400)

    content_type = (uploaded.content_type or '').lower()
    ext = _image_extension(uploaded) if content_type.startswith('image/') else None
    if ext is None:
        return JsonResponse({'error': 'Only image uploads are allowed'}, status=400)

    name = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}.{ext}"
    stored = default_storage.save(f"{UPLOAD_DIR}/{name}", uploaded)
    logger.info(f"User {request.user.pk} uploaded {stored} ({uploaded.size} bytes)")
    return JsonResponse({'ok': True, 'url': default_storage.url(stored)}, status=201)
