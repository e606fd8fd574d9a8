from django.contrib import admin

from listings.models import Listing


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ("title", "seller", "device_type", "price", "status", "created_at")
    list_filter = ("status", "device_type")
    search_fields = ("title", "seller__email")
    raw_id_fields = ("seller",)
    readonly_fields = ("id", "views", "created_at", "updated_at")
