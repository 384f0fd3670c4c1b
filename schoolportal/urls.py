"""
URL configuration for schoolportal project.

The four JSON endpoints under functions/v1/ are what the dashboards call;
the Django admin is where operators edit gateway settings and inspect
transactions and issued credentials.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('django-admin/', admin.site.urls),

    # Bearer token issuing
    path('api/auth/', include('education.api_urls')),

    # Payment gateway functions (bkash-payment, sslcommerz-payment)
    path('functions/v1/', include('payments.urls')),

    # Account provisioning functions (create-user-account, setup-admin)
    path('functions/v1/', include('provisioning.urls')),
]
