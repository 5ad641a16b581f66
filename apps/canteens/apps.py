from django.apps import AppConfig


class CanteensConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.canteens"
    label = "canteens"
