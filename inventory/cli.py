"""Command-line interface for the inventory admin client."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

__all__ = ["main", "parse_args", "apply_edits", "show_stats", "load_edits"]

from inventory.api import APIError, ProductAPI
from inventory.assets import StagedBinary
from inventory.categories import CategoryIndex
from inventory.config import API_URL
from inventory.listing import InventoryView
from inventory.logging_config import setup_logging
from inventory.reconcile import EditSession, plan_operations


def load_edits(path: Path) -> List[Dict[str, Any]]:
    """Read an edits file: a JSON list of {"op": ..., ...} objects."""
    with open(path, "r", encoding="utf-8") as f:
        edits = json.load(f)
    if not isinstance(edits, list):
        raise ValueError(f"{path}: expected a JSON list of edits")
    return edits


def apply_edits(
    session: EditSession,
    edits: List[Dict[str, Any]],
    base_dir: Path = Path("."),
    categories: Optional[CategoryIndex] = None,
) -> None:
    """Apply scripted edits to a session's draft.

    Supported ops:
        set_fields           {"fields": {"name": ..., "price": ...}}
        remove_image         {"image_id": ...}
        restore_image        {"image_id": ...}
        add_images           {"paths": [...]}
        patch_variant        {"variant_id": ..., "fields": {...}}
        delete_variant       {"variant_id": ...}
        restore_variant      {"variant_id": ...}
        set_variant_image    {"variant_id": ..., "path": ...}
        remove_variant_image {"variant_id": ...}
        add_variant          {"fields": {...}, "image": optional path}

    Image paths are relative to `base_dir`. When `categories` is given, a
    category_id in set_fields must exist in it.

    Raises:
        ValueError: On an unknown op, unknown category or unusable image
    """
    draft = session.draft

    def load(path: str) -> StagedBinary:
        return StagedBinary.from_path(base_dir / path)

    for edit in edits:
        op = edit.get("op")
        if op == "set_fields":
            fields = edit.get("fields", {})
            if categories is not None and not categories.is_valid(fields.get("category_id")):
                raise ValueError(f"Unknown category: {fields['category_id']}")
            draft.update(**fields)
        elif op == "remove_image":
            draft.images.remove(str(edit["image_id"]))
        elif op == "restore_image":
            draft.images.restore(str(edit["image_id"]))
        elif op == "add_images":
            draft.images.stage_many(load(p) for p in edit.get("paths", []))
        elif op == "patch_variant":
            draft.variants.patch_existing(str(edit["variant_id"]), edit.get("fields", {}))
        elif op == "delete_variant":
            draft.variants.mark_existing_deleted(str(edit["variant_id"]))
        elif op == "restore_variant":
            draft.variants.restore_existing(str(edit["variant_id"]))
        elif op == "set_variant_image":
            draft.variants.stage_existing_image(str(edit["variant_id"]), load(edit["path"]))
        elif op == "remove_variant_image":
            draft.variants.remove_existing_image(str(edit["variant_id"]))
        elif op == "add_variant":
            local_id = draft.variants.add_new()
            draft.variants.patch_new(local_id, edit.get("fields", {}))
            if edit.get("image"):
                draft.variants.stage_new_image(local_id, load(edit["image"]))
        else:
            raise ValueError(f"Unknown edit op: {op!r}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Inventory admin client: list products and apply product edits",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List products (optionally filtered by product or category name)
  python -m inventory.cli --list --search bebidas

  # Show stock statistics
  python -m inventory.cli --stats

  # Show what an edits file would send, without sending it
  python -m inventory.cli --product 42 --apply edits.json --dry-run

  # Apply an edits file to product 42
  python -m inventory.cli --product 42 --apply edits.json
        """,
    )

    parser.add_argument("--api-url", default=API_URL, help=f"Backend base URL (default: {API_URL})")

    # Info commands
    parser.add_argument("--list", action="store_true", help="List products and exit")
    parser.add_argument("--search", default="", help="Filter --list by product or category name")
    parser.add_argument("--stats", action="store_true", help="Show stock statistics and exit")
    parser.add_argument("--list-categories", action="store_true", help="List categories and exit")

    # Editing
    parser.add_argument("--product", metavar="ID", help="Product to edit (with --apply)")
    parser.add_argument("--apply", metavar="EDITS_JSON", help="JSON file with edits to apply and save")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the planned API calls for --apply without sending them",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    return parser.parse_args(argv)


def show_stats(view: InventoryView) -> None:
    stats = view.stats()
    print(f"\n{'='*50}")
    print(f"Total products: {stats['total']}")
    print(f"  With stock:    {stats['with_stock']}")
    print(f"  Without stock: {stats['without_stock']}")
    print()


def show_categories(index: CategoryIndex) -> None:
    mains = index.main_categories()
    print(f"{len(mains)} main categories, {len(index) - len(mains)} subcategories")
    for category_id, label in index.options():
        print(f"  {category_id}: {label}")


def run_apply(view: InventoryView, product_id: str, edits_path: Path, dry_run: bool) -> int:
    view.reload()
    session = view.open_editor(product_id)
    if session is None:
        print(f"Product {product_id} not found")
        return 1

    try:
        apply_edits(
            session,
            load_edits(edits_path),
            base_dir=edits_path.parent,
            categories=CategoryIndex.from_api(view.api),
        )
    except (APIError, OSError, ValueError, KeyError):
        view.cancel(session)
        raise

    if dry_run:
        steps = plan_operations(session.draft.snapshot())
        if not steps:
            print("No changes.")
        for step in steps:
            print(f"Step {step.number} ({step.name}):")
            for operation in step.operations:
                print(f"  {operation.describe()}")
        view.cancel(session)
        return 0

    result = view.save(session)
    print(result.summary())
    for error in result.errors:
        print(f"  - {error.message}")
    return 0 if result.succeeded else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    api = ProductAPI(base_url=args.api_url)
    view = InventoryView(api)

    try:
        if args.list_categories:
            show_categories(CategoryIndex.from_api(api))
            return 0

        if args.stats:
            view.reload()
            show_stats(view)
            return 0

        if args.apply:
            if not args.product:
                print("--apply requires --product")
                return 2
            return run_apply(view, args.product, Path(args.apply), args.dry_run)

        view.reload()
        frame = view.to_dataframe(args.search)
        if frame.empty:
            print("No products found.")
        else:
            print(frame.to_string(index=False))
        return 0
    except APIError as e:
        print(f"API error: {e}")
        return 1
    except (OSError, ValueError, KeyError) as e:
        print(f"Invalid edits: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
