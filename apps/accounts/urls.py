from django.urls import path

from . import views

app_name = 'accounts'

urlpatterns = [
    path('account/profile', views.profile, name='profile'),
    path('account/password', views.password, name='password'),
    path('upload', views.upload, name='upload'),
]
