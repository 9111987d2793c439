from django.urls import path

from . import views

app_name = 'catalog'

urlpatterns = [
    path('api/search', views.search, name='search'),
    path('api/search/products', views.search_suggestions, name='search_suggestions'),
    path('products/c/<slug:slug>/', views.category_listing, name='category_listing'),
    path('products/<slug:slug>/', views.product_detail, name='product_detail'),
    path('products/<slug:slug>/quote/', views.quote, name='quote'),
]
