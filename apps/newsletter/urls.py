from django.urls import path

from . import views

app_name = 'newsletter'

urlpatterns = [
    path('api/newsletter', views.subscribe, name='subscribe'),
    path('api/newsletter/unsubscribe', views.unsubscribe, name='unsubscribe'),
    path('manage/newsletter/send/', views.send, name='send'),
    path('manage/newsletter/campaigns/<uuid:campaign_id>/', views.campaign_detail, name='campaign_detail'),
]
