from django.contrib import admin

from accounts.models import StateRecord


@admin.register(StateRecord)
class StateRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "store_name", "key", "etag", "created_at", "updated_at")
    list_filter = ("store_name",)
    search_fields = ("key",)
    readonly_fields = ("etag", "created_at", "updated_at")
