from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Admin interface
    path('admin/', admin.site.urls),

    # Authentication
    path('api/auth/', include('apps.authentication.urls')),

    # Campuses, canteens, items and reviews
    path('api/', include('apps.canteens.urls')),

    # Orders
    path('api/orders/', include('apps.orders.urls')),
    path('api/group-orders/', include('apps.group_orders.urls')),

    # Payments and Razorpay webhooks
    path('api/payments/', include('apps.payments.urls')),
    path('api/webhooks/', include('apps.payments.webhook_urls')),

    # Offers
    path('api/offers/', include('apps.offers.urls')),

    # Vendor payouts
    path('api/payouts/', include('apps.payouts.urls')),

    # Smart security
    path('api/security/', include('apps.security.urls')),

    # Notifications
    path('api/notifications/', include('apps.notifications.urls')),
]

# Custom error handlers
handler404 = 'apps.common.views.custom_404'
handler500 = 'apps.common.views.custom_500'
handler403 = 'apps.common.views.custom_403'

# Admin site configuration
admin.site.site_header = "Campus Bites Administration"
admin.site.site_title = "Campus Bites Admin"
admin.site.index_title = "Welcome to Campus Bites"
