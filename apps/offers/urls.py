from django.urls import path

from . import views

app_name = "offers"

urlpatterns = [
    path("", views.offer_list, name="offer_list"),
    path("all/", views.all_offers, name="all_offers"),
    path("<int:offer_id>/", views.offer_detail, name="offer_detail"),
]
