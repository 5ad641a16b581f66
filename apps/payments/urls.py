from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('create-order/', views.create_payment_order, name='create_order'),
    path('verify/', views.verify_payment, name='verify'),
    path('failure/', views.payment_failure, name='failure'),
    path('cod/', views.cash_on_delivery, name='cash_on_delivery'),
    path('transactions/', views.transaction_list, name='transaction_list'),
    path('transactions/<int:transaction_id>/', views.transaction_detail, name='transaction_detail'),
    path('transactions/<int:transaction_id>/refund/', views.transaction_refund, name='transaction_refund'),
]
