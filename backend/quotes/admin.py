from django.contrib import admin

from .models import QuoteDraft


@admin.register(QuoteDraft)
class QuoteDraftAdmin(admin.ModelAdmin):
    list_display = ("id", "quote_number", "record_id", "state", "is_saving", "last_saved_at", "updated_at")
    search_fields = ("quote_number", "record_id")
    list_filter = ("state", "is_saving", "updated_at")
    date_hierarchy = "updated_at"
    readonly_fields = ("created_at", "updated_at", "last_saved_at", "history_index")
