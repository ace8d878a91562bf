"""Tests for scripted edits and the command-line entry point."""

import json
from unittest.mock import patch

import pytest

from inventory.categories import CategoryIndex
from inventory.cli import apply_edits, load_edits, main, parse_args
from inventory.tests.conftest import RecordingAPI


def write_edits(tmp_path, edits):
    path = tmp_path / "edits.json"
    path.write_text(json.dumps(edits), encoding="utf-8")
    return path


@pytest.fixture
def run_cli(api, previews):
    """Run main() against the recording API, without log files."""

    def run(*argv):
        with patch("inventory.cli.ProductAPI", return_value=api), \
                patch("inventory.cli.setup_logging"), \
                patch("inventory.reconcile.PreviewStore", return_value=previews):
            return main(list(argv))

    return run


class TestApplyEdits:
    def test_all_ops(self, session, tmp_path, png_bytes, categories):
        (tmp_path / "front.png").write_bytes(png_bytes)
        edits = [
            {"op": "set_fields", "fields": {"name": "Arepa Mix XL", "category_id": "c4"}},
            {"op": "remove_image", "image_id": "img1"},
            {"op": "remove_image", "image_id": "img2"},
            {"op": "restore_image", "image_id": "img2"},
            {"op": "add_images", "paths": ["front.png"]},
            {"op": "patch_variant", "variant_id": "v1", "fields": {"stock": "9"}},
            {"op": "delete_variant", "variant_id": "v2"},
            {"op": "restore_variant", "variant_id": "v2"},
            {"op": "set_variant_image", "variant_id": "v2", "path": "front.png"},
            {"op": "remove_variant_image", "variant_id": "v1"},
            {"op": "add_variant", "fields": {"option_key": "Size", "option_value": "XL"}, "image": "front.png"},
        ]

        apply_edits(session, edits, base_dir=tmp_path, categories=CategoryIndex(categories))

        assert session.draft.pending_changes() == {
            "fields": ["category_id", "name"],
            "images_added": 1,
            "images_removed": 1,
            "variants_added": 1,
            "variants_deleted": 0,
            "variant_images_changed": 2,
        }

    def test_unknown_category_is_rejected(self, session, categories):
        with pytest.raises(ValueError, match="Unknown category"):
            apply_edits(
                session,
                [{"op": "set_fields", "fields": {"category_id": "c42"}}],
                categories=CategoryIndex(categories),
            )

    def test_unknown_op_is_rejected(self, session):
        with pytest.raises(ValueError, match="Unknown edit op"):
            apply_edits(session, [{"op": "rename_everything"}])

    def test_load_edits_requires_list(self, tmp_path):
        path = write_edits(tmp_path, {"op": "set_fields"})
        with pytest.raises(ValueError, match="expected a JSON list"):
            load_edits(path)


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert not args.list
        assert not args.dry_run
        assert args.product is None

    def test_apply_flags(self):
        args = parse_args(["--product", "42", "--apply", "edits.json", "--dry-run", "-v"])
        assert args.product == "42"
        assert args.apply == "edits.json"
        assert args.dry_run
        assert args.verbose


class TestMain:
    def test_dry_run_sends_nothing(self, run_cli, api, tmp_path, capsys):
        path = write_edits(tmp_path, [
            {"op": "patch_variant", "variant_id": "v1", "fields": {"price": "1200"}},
            {"op": "delete_variant", "variant_id": "v2"},
        ])

        code = run_cli("--product", "p1", "--apply", str(path), "--dry-run")

        out = capsys.readouterr().out
        assert code == 0
        assert api.calls == []
        assert "Step 4 (existing_variants):" in out
        assert "update_variant_fields(variant v1)" in out
        assert "delete_variant(variant v2)" in out

    def test_apply_saves(self, run_cli, api, tmp_path, capsys):
        path = write_edits(tmp_path, [{"op": "patch_variant", "variant_id": "v1", "fields": {"price": "1200"}}])

        code = run_cli("--product", "p1", "--apply", str(path))

        assert code == 0
        assert api.calls == [("update_variant_fields", ("v1", {"price": 1200}), {})]
        assert "Saved 1 change(s)." in capsys.readouterr().out

    def test_apply_reports_failures(self, product, categories, previews, tmp_path, capsys):
        api = RecordingAPI(products=[product], categories=categories, fail_on={"delete_variant"})
        path = write_edits(tmp_path, [{"op": "delete_variant", "variant_id": "v2"}])

        with patch("inventory.cli.ProductAPI", return_value=api), \
                patch("inventory.cli.setup_logging"), \
                patch("inventory.reconcile.PreviewStore", return_value=previews):
            code = main(["--product", "p1", "--apply", str(path)])

        out = capsys.readouterr().out
        assert code == 1
        assert "Saving failed: 1 of 1" in out
        assert "delete_variant(variant v2): delete_variant failed: HTTP 500" in out

    def test_apply_unknown_product(self, run_cli, tmp_path, capsys):
        path = write_edits(tmp_path, [])

        assert run_cli("--product", "p404", "--apply", str(path)) == 1
        assert "Product p404 not found" in capsys.readouterr().out

    def test_apply_requires_product(self, run_cli, tmp_path):
        assert run_cli("--apply", str(write_edits(tmp_path, []))) == 2

    def test_bad_edits_file(self, run_cli, api, tmp_path, capsys):
        path = write_edits(tmp_path, [{"op": "explode"}])

        assert run_cli("--product", "p1", "--apply", str(path)) == 1
        assert "Invalid edits" in capsys.readouterr().out
        assert api.calls == []

    def test_stats(self, run_cli, capsys):
        assert run_cli("--stats") == 0
        assert "Total products: 1" in capsys.readouterr().out

    def test_list_categories(self, run_cli, capsys):
        assert run_cli("--list-categories") == 0
        out = capsys.readouterr().out
        assert "2 main categories, 2 subcategories" in out
        assert "c3: ↳ Juices" in out

    def test_default_lists_products(self, run_cli, capsys):
        assert run_cli("--search", "arepa") == 0
        out = capsys.readouterr().out
        assert "Arepa Mix" in out
        assert "$ 1.000 COP - $ 1.500 COP" in out
