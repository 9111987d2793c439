import uuid

from django.conf import settings


class CartSessionMiddleware:
    """Attach the anonymous cart session id to every request and make sure
    the browser keeps the cookie for the next visit."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        cookie_name = settings.CART_SESSION_COOKIE
        sid = request.COOKIES.get(cookie_name, '').strip()
        is_new = not sid
        if is_new:
            sid = uuid.uuid4().hex
        request.cart_session_id = sid

        response = self.get_response(request)
        if is_new:
            response.set_cookie(
                cookie_name,
                sid,
                max_age=settings.CART_SESSION_MAX_AGE,
                httponly=True,
                samesite='Lax',
                secure=not settings.DEBUG,
            )
        return response
