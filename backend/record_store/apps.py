from django.apps import AppConfig


class RecordStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "record_store"
    verbose_name = "Airtable record store"
