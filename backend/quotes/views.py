# quotes/views.py
import logging

from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

import record_store
from pricing.dataclasses import Quote
from record_store.client import RecordNotFound, RecordStoreConfigError, RecordStoreError
from record_store.gateway import is_valid_record_id

from .catalog import filter_packages, filter_products
from .models import QuoteDraft
from .payloads import PayloadError, parse_payload
from .serializers import (
    CatalogQuerySerializer,
    CustomItemSerializer,
    DraftCreateSerializer,
    DraftLoadSerializer,
    MoveItemSerializer,
    OptionUpdateSerializer,
    PackageSerializer,
    ProductSerializer,
    QuoteDraftListSerializer,
    QuoteDraftSerializer,
    StatusSerializer,
)
from .workspace import InvalidEdit, NotInWorkspace, QuoteWorkspace

logger = logging.getLogger(__name__)


def get_gateway():
    return record_store.load()


def detail(message, code):
    return Response({"detail": message}, status=code)


def store_error_response(exc: RecordStoreError):
    if isinstance(exc, RecordNotFound):
        return detail(str(exc), status.HTTP_404_NOT_FOUND)
    if isinstance(exc, RecordStoreConfigError):
        return detail(str(exc), status.HTTP_503_SERVICE_UNAVAILABLE)
    return detail(str(exc), status.HTTP_502_BAD_GATEWAY)


def locked_draft(draft_id):
    return get_object_or_404(QuoteDraft.objects.select_for_update(), pk=draft_id)


def field_changes(request):
    """PATCH bodies are a JSON object of field name -> value; None for anything else."""
    if not isinstance(request.data, dict):
        return None
    return dict(request.data)


# ---- Drafts ----
class DraftListCreateView(APIView):
    def get(self, request):
        drafts = QuoteDraft.objects.order_by("-updated_at")
        return Response(QuoteDraftListSerializer(drafts, many=True).data)

    def post(self, request):
        ser = DraftCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        record_id = ser.validated_data.get("record_id") or None

        if record_id and QuoteDraft.objects.filter(record_id=record_id).exists():
            return detail(f"A draft for {record_id} already exists", status.HTTP_409_CONFLICT)

        ws = QuoteWorkspace.start(Quote(record_id=record_id, quote_number=ser.validated_data["quote_number"]))
        draft = QuoteDraft()
        draft.store(ws)
        try:
            with transaction.atomic():
                draft.save()
        except IntegrityError:
            return detail(f"A draft for {record_id} already exists", status.HTTP_409_CONFLICT)
        return Response(QuoteDraftSerializer(draft).data, status=status.HTTP_201_CREATED)


class DraftLoadView(APIView):
    """
    Load a quote from the record store into a draft. Only one load per record id
    runs at a time; a finished draft is returned as is unless `refresh` is set.
    """

    def post(self, request):
        ser = DraftLoadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        record_id = ser.validated_data["record_id"]
        refresh = ser.validated_data["refresh"]

        created = False
        with transaction.atomic():
            draft = QuoteDraft.objects.select_for_update().filter(record_id=record_id).first()
            if draft is not None:
                if draft.state == QuoteDraft.STATE_LOADING:
                    return detail(f"Quote {record_id} is already loading", status.HTTP_409_CONFLICT)
                if not refresh:
                    return Response(QuoteDraftSerializer(draft).data)
                if draft.is_saving:
                    return detail("Draft is being saved", status.HTTP_409_CONFLICT)
                draft.state = QuoteDraft.STATE_LOADING
                draft.save(update_fields=["state", "updated_at"])
            else:
                try:
                    with transaction.atomic():
                        draft = QuoteDraft.objects.create(record_id=record_id, state=QuoteDraft.STATE_LOADING)
                except IntegrityError:
                    return detail(f"Quote {record_id} is already loading", status.HTTP_409_CONFLICT)
                created = True

        try:
            quote = get_gateway().load_quote(record_id)
        except RecordStoreError as exc:
            logger.warning("Loading quote %s failed: %s", record_id, exc)
            with transaction.atomic():
                draft = locked_draft(draft.pk)
                if created:
                    draft.delete()
                else:
                    draft.state = QuoteDraft.STATE_READY
                    draft.last_error = str(exc)
                    draft.save(update_fields=["state", "last_error", "updated_at"])
            return store_error_response(exc)

        ws = QuoteWorkspace.start(quote)
        with transaction.atomic():
            draft = locked_draft(draft.pk)
            draft.store(ws)
            draft.state = QuoteDraft.STATE_READY
            draft.last_error = ""
            draft.save()
        code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
        return Response(QuoteDraftSerializer(draft).data, status=code)


class DraftEditView(APIView):
    """Base for every tree edit: lock the row, apply one workspace call, store."""

    def edit(self, draft_id, action, success_status=status.HTTP_200_OK):
        with transaction.atomic():
            draft = locked_draft(draft_id)
            if draft.state == QuoteDraft.STATE_LOADING:
                return detail("Draft is still loading", status.HTTP_409_CONFLICT)
            ws = draft.workspace()
            try:
                action(ws)
            except NotInWorkspace as exc:
                return detail(str(exc), status.HTTP_404_NOT_FOUND)
            except (InvalidEdit, PayloadError) as exc:
                return detail(str(exc), status.HTTP_400_BAD_REQUEST)
            draft.store(ws)
            draft.save()
            data = QuoteDraftSerializer(draft).data
        return Response(data, status=success_status)


class DraftDetailView(DraftEditView):
    def get(self, request, id):
        draft = get_object_or_404(QuoteDraft, pk=id)
        return Response(QuoteDraftSerializer(draft).data)

    def patch(self, request, id):
        changes = field_changes(request)
        if changes is None:
            return detail("Expected a JSON object of quote fields", status.HTTP_400_BAD_REQUEST)
        return self.edit(id, lambda ws: ws.update_quote(changes))

    def delete(self, request, id):
        draft = get_object_or_404(QuoteDraft, pk=id)
        draft.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---- Options ----
class OptionCollectionView(DraftEditView):
    def post(self, request, id):
        return self.edit(id, lambda ws: ws.add_option(), status.HTTP_201_CREATED)


class OptionDetailView(DraftEditView):
    def patch(self, request, id, key):
        ser = OptionUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        changes = ser.validated_data["changes"]
        reset = ser.validated_data["reset"]
        return self.edit(id, lambda ws: ws.update_option(key, changes, reset=reset))

    def delete(self, request, id, key):
        # deleting the last option is a silent no-op
        return self.edit(id, lambda ws: ws.delete_option(key))


class OptionDuplicateView(DraftEditView):
    def post(self, request, id, key):
        return self.edit(id, lambda ws: ws.duplicate_option(key), status.HTTP_201_CREATED)


class OptionDropView(DraftEditView):
    def post(self, request, id, key):
        try:
            payload = parse_payload(request.data)
        except PayloadError as exc:
            return detail(str(exc), status.HTTP_400_BAD_REQUEST)
        return self.edit(id, lambda ws: ws.drop(key, payload))


# ---- Items ----
class ItemCollectionView(DraftEditView):
    def post(self, request, id, key):
        ser = CustomItemSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        item_type = ser.validated_data["type"]
        return self.edit(id, lambda ws: ws.add_custom_item(key, item_type), status.HTTP_201_CREATED)


class ItemMoveView(DraftEditView):
    def post(self, request, id, key):
        ser = MoveItemSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        item_id = ser.validated_data["item_id"]
        target_id = ser.validated_data["target_id"]
        return self.edit(id, lambda ws: ws.move_item(key, item_id, target_id))


class ItemDetailView(DraftEditView):
    def patch(self, request, id, key, item_id):
        changes = field_changes(request)
        if changes is None:
            return detail("Expected a JSON object of item fields", status.HTTP_400_BAD_REQUEST)
        return self.edit(id, lambda ws: ws.update_item(key, item_id, changes))

    def delete(self, request, id, key, item_id):
        return self.edit(id, lambda ws: ws.remove_item(key, item_id))


class ItemDuplicateView(DraftEditView):
    def post(self, request, id, key, item_id):
        return self.edit(id, lambda ws: ws.duplicate_item(key, item_id), status.HTTP_201_CREATED)


# ---- History ----
class UndoView(DraftEditView):
    def post(self, request, id):
        return self.edit(id, lambda ws: ws.undo())


class RedoView(DraftEditView):
    def post(self, request, id):
        return self.edit(id, lambda ws: ws.redo())


# ---- Record store round trips ----
class DraftSaveView(APIView):
    """
    Single-flight save. The flag is raised under the row lock, the record store
    is written outside any transaction, and the returned ids are stamped onto
    whatever the tree looks like once the save finishes.
    """

    def post(self, request, id):
        with transaction.atomic():
            draft = locked_draft(id)
            if draft.state == QuoteDraft.STATE_LOADING:
                return detail("Draft is still loading", status.HTTP_409_CONFLICT)
            if draft.is_saving:
                return detail("A save is already in progress", status.HTTP_409_CONFLICT)
            draft.is_saving = True
            draft.save(update_fields=["is_saving", "updated_at"])
            quote = draft.workspace().quote

        option_keys = [o.key for o in quote.options]
        try:
            result = get_gateway().save_quote(quote)
        except RecordStoreError as exc:
            logger.warning("Saving draft %s failed: %s", id, exc)
            self._release(id, error=str(exc))
            return store_error_response(exc)
        except Exception:
            self._release(id, error="Unexpected error while saving")
            raise

        with transaction.atomic():
            draft = locked_draft(id)
            ws = draft.workspace()
            ws.apply_save_result(result, option_keys)
            draft.store(ws)
            draft.is_saving = False
            draft.last_error = ""
            draft.last_saved_at = timezone.now()
            draft.save()
        logger.info("Draft %s saved as %s", id, result.quote_id)
        return Response(QuoteDraftSerializer(draft).data)

    @staticmethod
    def _release(draft_id, error):
        with transaction.atomic():
            draft = locked_draft(draft_id)
            draft.is_saving = False
            draft.last_error = error
            draft.save(update_fields=["is_saving", "last_error", "updated_at"])


class DraftStatusView(APIView):
    def post(self, request, id):
        ser = StatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        new_status = ser.validated_data["status"]

        draft = get_object_or_404(QuoteDraft, pk=id)
        if not is_valid_record_id(draft.record_id):
            return detail("Save the quote before changing its status", status.HTTP_400_BAD_REQUEST)
        try:
            get_gateway().update_quote_status(draft.record_id, new_status)
        except RecordStoreError as exc:
            return store_error_response(exc)

        with transaction.atomic():
            draft = locked_draft(id)
            ws = draft.workspace()
            ws.quote.status = new_status
            draft.store(ws)
            draft.save()
        return Response(QuoteDraftSerializer(draft).data)


# ---- Catalog ----
class CatalogProductsView(APIView):
    def get(self, request):
        query = CatalogQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            products = get_gateway().load_catalog_products()
        except RecordStoreError as exc:
            return store_error_response(exc)
        rows = filter_products(products, query.validated_data["search"], query.validated_data["sort"])
        return Response(ProductSerializer(rows, many=True).data)


class CatalogPackagesView(APIView):
    def get(self, request):
        query = CatalogQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            packages = get_gateway().load_active_packages()
        except RecordStoreError as exc:
            return store_error_response(exc)
        rows = filter_packages(packages, query.validated_data["search"], query.validated_data["sort"])
        return Response(PackageSerializer(rows, many=True).data)
