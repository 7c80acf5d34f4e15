from django.db import models

from pricing.dataclasses import Quote, from_jsonable, to_jsonable

from .history import History
from .workspace import QuoteWorkspace


class QuoteDraft(models.Model):
    """One quote being edited: the working tree, its undo history and the save/load flags."""

    STATE_READY = "READY"
    STATE_LOADING = "LOADING"
    STATE_CHOICES = [(STATE_READY, "Ready"), (STATE_LOADING, "Loading")]

    record_id = models.CharField(max_length=32, unique=True, null=True, blank=True)
    quote_number = models.CharField(max_length=64, blank=True, default="")
    state = models.CharField(max_length=16, choices=STATE_CHOICES, default=STATE_READY)
    tree = models.JSONField(default=dict)
    history = models.JSONField(default=list)
    history_index = models.IntegerField(default=-1)
    is_saving = models.BooleanField(default=False)
    last_saved_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "quote_drafts"
        indexes = [
            models.Index(fields=["-updated_at"], name="quote_drafts_updated_idx"),
        ]

    def __str__(self):
        return self.quote_number or self.record_id or f"draft-{self.pk}"

    def workspace(self) -> QuoteWorkspace:
        quote = from_jsonable(Quote, self.tree) if self.tree else Quote()
        return QuoteWorkspace(quote, History(self.history, self.history_index))

    def store(self, ws: QuoteWorkspace) -> None:
        self.tree = to_jsonable(ws.quote)
        self.history = ws.history.entries
        self.history_index = ws.history.index
        self.record_id = ws.quote.record_id or None
        self.quote_number = ws.quote.quote_number or ""
