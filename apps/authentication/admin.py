from django.contrib import admin
from .models import User

@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("email", "name", "role", "campus", "is_banned", "date_joined")
    list_filter = ("role", "is_banned", "is_deleted")
    search_fields = ("email", "name", "phone")
