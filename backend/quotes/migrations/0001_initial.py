# Generated manually for the quote draft table
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="QuoteDraft",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("record_id", models.CharField(blank=True, max_length=32, null=True, unique=True)),
                ("quote_number", models.CharField(blank=True, default="", max_length=64)),
                ("state", models.CharField(choices=[("READY", "Ready"), ("LOADING", "Loading")], default="READY", max_length=16)),
                ("tree", models.JSONField(default=dict)),
                ("history", models.JSONField(default=list)),
                ("history_index", models.IntegerField(default=-1)),
                ("is_saving", models.BooleanField(default=False)),
                ("last_saved_at", models.DateTimeField(blank=True, null=True)),
                ("last_error", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "quote_drafts",
                "indexes": [models.Index(fields=["-updated_at"], name="quote_drafts_updated_idx")],
            },
        ),
    ]
