from functools import wraps

from django.http import JsonResponse


def login_required_json(view_func):
    """Like ``login_required`` but answers 401 JSON instead of redirecting."""
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'error': 'Authentication required'}, status=401)
        return view_func(request, *args, **kwargs)
    return _wrapped


def staff_required(view_func):
    """JSON endpoints that only shop staff may call: 401 anonymous, 403 non-staff."""
    @login_required_json
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        if not request.user.is_staff:
            return JsonResponse({'error': 'Forbidden'}, status=403)
        return view_func(request, *args, **kwargs)
    return _wrapped
