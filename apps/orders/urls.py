from django.urls import path

from . import views

app_name = "orders"

urlpatterns = [
    path("", views.student_orders, name="student_orders"),
    path("canteen/", views.canteen_orders, name="canteen_orders"),
    path("deleted/", views.deleted_orders, name="deleted_orders"),
    path("recommendations/", views.order_recommendations, name="order_recommendations"),
    path("also-ordered/<int:item_id>/", views.people_also_ordered, name="people_also_ordered"),
    path("<uuid:order_id>/", views.order_detail, name="order_detail"),
    path("<uuid:order_id>/status/", views.order_status, name="order_status"),
]
