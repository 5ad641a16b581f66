from django.urls import path

from . import views

app_name = 'payouts'

urlpatterns = [
    path('balance/', views.balance, name='payout_balance'),
    path('request/', views.request_payout, name='payout_request'),
    path('history/', views.payout_history, name='payout_history'),
    path('requests/<int:request_id>/', views.payout_status, name='payout_status'),
    path('bank-details/', views.bank_details, name='bank_details'),

    path('admin/requests/', views.admin_payout_requests, name='admin_payout_requests'),
    path('admin/requests/<int:request_id>/review/', views.review_payout_request, name='review_payout_request'),
    path('admin/requests/<int:request_id>/process/', views.process_payout, name='process_payout'),
    path('admin/bank-details/', views.admin_bank_details, name='admin_bank_details'),
    path('admin/bank-details/<int:bank_details_id>/verify/', views.verify_bank_details, name='verify_bank_details'),
]
