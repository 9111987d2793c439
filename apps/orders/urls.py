from django.urls import path

from . import views

app_name = 'orders'

urlpatterns = [
    path('api/orders', views.create, name='create'),
    path('api/orders/<uuid:order_id>', views.detail, name='detail'),
    path('api/account/orders', views.account_orders, name='account_orders'),
    path('manage/orders/<uuid:order_id>/status/', views.update_order_status, name='update_status'),
]
