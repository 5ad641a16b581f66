from django.urls import path
from . import views

app_name = "notifications"

urlpatterns = [
    path('', views.notifications_list, name='notifications_list'),
    path('<int:notification_id>/read/', views.mark_notification_read, name='mark_notification_read'),
    path('read-all/', views.mark_all_read, name='mark_all_read'),
]
