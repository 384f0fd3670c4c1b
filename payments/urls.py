from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('bkash-payment', views.bkash_payment, name='bkash_payment'),
    path('sslcommerz-payment', views.sslcommerz_payment, name='sslcommerz_payment'),
]
