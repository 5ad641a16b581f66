from django.apps import AppConfig


class GroupOrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.group_orders"
    label = "group_orders"
