from django.urls import path
from . import webhooks

app_name = 'webhooks'

urlpatterns = [
    path('razorpay/', webhooks.razorpay_webhook, name='razorpay'),
]
