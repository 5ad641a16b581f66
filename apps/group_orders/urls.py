from django.urls import path

from . import views

app_name = "group_orders"

urlpatterns = [
    path("", views.group_orders, name="group_orders"),
    path("join/", views.join_group_order, name="join"),
    path("<str:group_link>/", views.group_order_detail, name="detail"),
    path("<str:group_link>/items/", views.group_order_items, name="items"),
    path("<str:group_link>/checkout/", views.group_order_checkout, name="checkout"),
]
