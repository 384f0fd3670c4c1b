from django.urls import path
from . import views

app_name = 'provisioning'

urlpatterns = [
    path('create-user-account', views.create_user_account, name='create_user_account'),
    path('setup-admin', views.setup_admin, name='setup_admin'),
]
