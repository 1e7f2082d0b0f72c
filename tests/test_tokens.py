"""Tests for design-token extraction."""

from pathlib import Path

import pytest

from livepreview.tokens import extract, scan_theme_directory, theme_files


THEME_CSS = """
@import "tailwindcss";

@theme {
  --color-primary-500: #3b82f6;
  --color-primary-600: #2563eb;
  --color-brand: #ff00aa;
  --color-background: #ffffff;
  --spacing-3xl: 4rem;
  --text-hero: 3.5rem;
  --text-hero--line-height: 1.1;
  --font-display: "Inter", sans-serif;
  --font-weight-heavy: 900;
  --radius-lg: 0.75rem;
}

@utility btn-primary {
  background: var(--color-primary-500);
  &:hover { background: var(--color-primary-600); }
}
"""


class TestExtract:
    """Tests for extract()."""

    def test_scaled_color_uses_base_name(self) -> None:
        tokens = extract(":root { --color-primary-500: #3b82f6; }")
        assert tokens.colors == frozenset({"primary"})

    def test_spacing_token(self) -> None:
        tokens = extract(":root { --spacing-3xl: 4rem; }")
        assert "3xl" in tokens.spacing

    def test_theme_block_categories(self) -> None:
        tokens = extract(THEME_CSS)
        assert tokens.colors == frozenset({"primary", "brand"})
        assert "3xl" in tokens.spacing
        assert tokens.text_sizes == frozenset({"hero"})
        assert tokens.fonts == frozenset({"display"})

    def test_unscaled_semantic_colors_are_ignored(self) -> None:
        tokens = extract(
            ":root { --color-background: #fff; --color-muted-foreground: #888; }"
        )
        assert tokens.colors == frozenset()

    def test_font_weight_is_not_a_font(self) -> None:
        tokens = extract(":root { --font-weight-bold: 700; --font-mono: monospace; }")
        assert tokens.fonts == frozenset({"mono"})

    def test_non_color_numeric_scales(self) -> None:
        tokens = extract(":root { --radius-100: 4px; --z-50: 50; --brand-700: #111; }")
        assert tokens.colors == frozenset({"brand"})

    def test_utility_definition_captured_verbatim(self) -> None:
        tokens = extract(THEME_CSS)
        assert tokens.utilities == frozenset({"btn-primary"})
        assert len(tokens.utility_definitions) == 1
        definition = tokens.utility_definitions[0]
        assert definition.startswith("@utility btn-primary {")
        assert "&:hover { background: var(--color-primary-600); }" in definition
        assert definition.endswith("}")

    def test_functional_utility_has_definition_but_no_name(self) -> None:
        tokens = extract("@utility tab-* { tab-size: --value(integer); }")
        assert tokens.utilities == frozenset()
        assert tokens.utility_definitions == ("@utility tab-* { tab-size: --value(integer); }",)

    def test_braces_in_strings_do_not_end_utility(self) -> None:
        css = '@utility quoted {\n  &::before { content: "}"; }\n  &::after { content: \'{\'; }\n}'
        tokens = extract(css)
        assert tokens.utilities == frozenset({"quoted"})
        assert tokens.utility_definitions == (css,)

    def test_comments_are_ignored(self) -> None:
        tokens = extract("/* --color-ghost-500: red; */ :root { --color-real-500: red; }")
        assert tokens.colors == frozenset({"real"})

    def test_unterminated_block_does_not_raise(self) -> None:
        tokens = extract("@utility broken { color: red;\n:root { --color-ok-500: red; }")
        assert tokens.utility_definitions == ()
        assert "ok" in tokens.colors

    def test_empty_input(self) -> None:
        assert extract("").is_empty


class TestScanThemeDirectory:
    """Tests for scanning a theme directory."""

    def test_missing_directory_gives_empty_scan(self, tmp_path: Path) -> None:
        scan = scan_theme_directory(tmp_path / "missing")
        assert scan.tokens.is_empty
        assert scan.files == []

    def test_merges_nested_files(self, tmp_path: Path) -> None:
        (tmp_path / "nested").mkdir()
        (tmp_path / "colors.css").write_text(":root { --color-ocean-500: blue; }")
        (tmp_path / "nested" / "spacing.css").write_text(":root { --spacing-gutter: 2rem; }")
        (tmp_path / "notes.txt").write_text("--color-ignored-500: red;")

        scan = scan_theme_directory(tmp_path)

        assert scan.tokens.colors == frozenset({"ocean"})
        assert scan.tokens.spacing == frozenset({"gutter"})
        assert scan.files == theme_files(tmp_path)
        assert len(scan.files) == 2

    def test_unreadable_file_is_skipped(self, tmp_path: Path) -> None:
        (tmp_path / "good.css").write_text(":root { --color-ocean-500: blue; }")
        (tmp_path / "bad.css").write_bytes(b"\xff\xfe\xfa invalid utf-8")

        scan = scan_theme_directory(tmp_path)

        assert scan.tokens.colors == frozenset({"ocean"})
        assert scan.failed == [tmp_path / "bad.css"]
        assert scan.files == [tmp_path / "good.css"]

    @pytest.mark.parametrize("order", [("a", "b"), ("b", "a")])
    def test_identical_directories_give_identical_tokens(
        self, tmp_path: Path, order: tuple[str, str]
    ) -> None:
        first = tmp_path / "first"
        second = tmp_path / "second"
        for root in (first, second):
            root.mkdir()
        for name in order:
            (first / f"{name}.css").write_text(f":root {{ --color-{name}x-500: red; }}")
        for name in reversed(order):
            (second / f"{name}.css").write_text(f":root {{ --color-{name}x-500: red; }}")

        assert scan_theme_directory(first).tokens == scan_theme_directory(second).tokens
