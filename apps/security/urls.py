from django.urls import path

from . import views

app_name = 'security'

urlpatterns = [
    path('dashboard/', views.security_dashboard, name='security_dashboard'),
    path('devices/manage/', views.manage_device, name='manage_device'),
    path('verification/send/', views.send_verification_code, name='send_verification_code'),
    path('verification/verify/', views.verify_code, name='verify_code'),
    path('settings/', views.security_settings, name='security_settings'),
    path('events/', views.security_events, name='security_events'),
    path('education/<str:prompt_type>/', views.education_prompt, name='education_prompt'),
    path('recovery/check/', views.recovery_check, name='recovery_check'),
]
