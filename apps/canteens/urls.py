from django.urls import path

from . import views

app_name = 'canteens'

urlpatterns = [
    path('campuses/', views.campus_list, name='campus_list'),
    path('campuses/requests/', views.campus_requests, name='campus_requests'),
    path('campuses/requests/<int:request_id>/review/', views.review_campus_request, name='review_campus_request'),
    path('campuses/<int:campus_id>/', views.campus_detail, name='campus_detail'),
    path('canteens/', views.canteen_list, name='canteen_list'),
    path('canteens/mine/', views.my_canteen, name='my_canteen'),
    path('canteens/<int:canteen_id>/', views.canteen_detail, name='canteen_detail'),
    path('canteens/<int:canteen_id>/approval/', views.canteen_approval, name='canteen_approval'),
    path('canteens/<int:canteen_id>/items/', views.canteen_items, name='canteen_items'),
    path('canteens/<int:canteen_id>/reviews/', views.canteen_reviews, name='canteen_reviews'),
    path('items/<int:item_id>/', views.item_detail, name='item_detail'),
    path('items/<int:item_id>/toggle-ready/', views.toggle_item_ready, name='toggle_item_ready'),
]
