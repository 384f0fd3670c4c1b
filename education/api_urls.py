from django.urls import path
from . import api_views

app_name = 'education_api'

urlpatterns = [
    path('token', api_views.api_token, name='token'),
]
