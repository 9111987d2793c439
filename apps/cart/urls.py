from django.urls import path

from . import views

app_name = 'cart'

urlpatterns = [
    path('add/', views.add, name='add'),
    path('summary/', views.summary, name='summary'),
    path('items/<int:item_id>/remove/', views.remove_item, name='remove_item'),
    path('items/<int:item_id>/qty/', views.change_qty, name='change_qty'),
]
