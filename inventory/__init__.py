"""Inventory admin client: product drafts reconciled against the product API."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from inventory.api import APIError, ProductAPI
from inventory.assets import AssetRef, PreviewStore, StagedBinary
from inventory.categories import CategoryIndex
from inventory.draft import DraftSnapshot, ProductDraft
from inventory.listing import InventoryView, total_stock
from inventory.models import Category, ImageRecord, Product, Variant
from inventory.reconcile import (
    CommitResult,
    EditSession,
    ReconciliationEngine,
    SessionClosedError,
    plan_operations,
)
from inventory.variants import VariantDraftSet

__all__ = [
    # Version
    "__version__",
    # Models
    "Category",
    "ImageRecord",
    "Product",
    "Variant",
    # API
    "APIError",
    "ProductAPI",
    # Drafting
    "AssetRef",
    "PreviewStore",
    "StagedBinary",
    "VariantDraftSet",
    "ProductDraft",
    "DraftSnapshot",
    # Reconciliation
    "ReconciliationEngine",
    "EditSession",
    "CommitResult",
    "SessionClosedError",
    "plan_operations",
    # Views
    "CategoryIndex",
    "InventoryView",
    "total_stock",
]
