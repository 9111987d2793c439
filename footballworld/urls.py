from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('fw-manage/', admin.site.urls),
    path('', include('apps.catalog.urls')),
    path('cart/', include('apps.cart.urls')),
    path('', include('apps.newsletter.urls')),
    path('', include('apps.orders.urls')),
    path('api/', include('apps.accounts.urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
