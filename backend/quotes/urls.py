from django.urls import path

from .views import (
    CatalogPackagesView,
    CatalogProductsView,
    DraftDetailView,
    DraftListCreateView,
    DraftLoadView,
    DraftSaveView,
    DraftStatusView,
    ItemCollectionView,
    ItemDetailView,
    ItemDuplicateView,
    ItemMoveView,
    OptionCollectionView,
    OptionDetailView,
    OptionDropView,
    OptionDuplicateView,
    RedoView,
    UndoView,
)

option = "drafts/<int:id>/options/<str:key>"

urlpatterns = [
    path("drafts", DraftListCreateView.as_view(), name="draft-list"),
    path("drafts/load", DraftLoadView.as_view(), name="draft-load"),
    path("drafts/<int:id>", DraftDetailView.as_view(), name="draft-detail"),
    path("drafts/<int:id>/undo", UndoView.as_view(), name="draft-undo"),
    path("drafts/<int:id>/redo", RedoView.as_view(), name="draft-redo"),
    path("drafts/<int:id>/save", DraftSaveView.as_view(), name="draft-save"),
    path("drafts/<int:id>/status", DraftStatusView.as_view(), name="draft-status"),
    path("drafts/<int:id>/options", OptionCollectionView.as_view(), name="option-list"),
    path(option, OptionDetailView.as_view(), name="option-detail"),
    path(f"{option}/duplicate", OptionDuplicateView.as_view(), name="option-duplicate"),
    path(f"{option}/drop", OptionDropView.as_view(), name="option-drop"),
    path(f"{option}/items", ItemCollectionView.as_view(), name="item-list"),
    path(f"{option}/items/move", ItemMoveView.as_view(), name="item-move"),
    path(f"{option}/items/<str:item_id>", ItemDetailView.as_view(), name="item-detail"),
    path(f"{option}/items/<str:item_id>/duplicate", ItemDuplicateView.as_view(), name="item-duplicate"),
    path("catalog/products", CatalogProductsView.as_view(), name="catalog-products"),
    path("catalog/packages", CatalogPackagesView.as_view(), name="catalog-packages"),
]
