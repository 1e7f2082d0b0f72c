"""Design-token extraction from theme CSS.

Classification is heuristic: custom-property names are categorized by their
leading segment, so a mixed-purpose token can land in the wrong category.
That is an accepted limitation; the worst outcome is a few extra safelisted
classes.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import Path

from livepreview.logging import PreviewLogComponent, get_logger
from livepreview.models import ThemeScan, TokenSet

logger = get_logger(PreviewLogComponent.TOKENS)

# Any custom-property declaration: `--name:`
_DECLARATION_RE = re.compile(r"--([A-Za-z][A-Za-z0-9_.-]*)\s*:")

# Longest prefix first so `font-size-` wins over `font-`. None means ignore.
_CATEGORY_PREFIXES: tuple[tuple[str, str | None], ...] = (
    ("font-family-", "fonts"),
    ("font-size-", "text_sizes"),
    ("font-weight-", None),
    ("font-", "fonts"),
    ("color-", "colors"),
    ("spacing-", "spacing"),
    ("size-", "spacing"),
    ("text-", "text_sizes"),
)

# Colour scale suffix: two/three digit shade (covers 50 and 950)
_SHADE_SUFFIX_RE = re.compile(r"^(?P<base>.+?)-(?P<shade>\d{2,3})$")

# Leading segments with numeric scales that are never colours
_NON_COLOR_SEGMENTS: frozenset[str] = frozenset(
    {
        "animate",
        "aspect",
        "blur",
        "breakpoint",
        "container",
        "duration",
        "ease",
        "inset",
        "leading",
        "opacity",
        "perspective",
        "radius",
        "shadow",
        "tracking",
        "tw",
        "z",
    }
)

# Stricter expressions used inside @theme blocks
_THEME_PATTERNS: dict[str, re.Pattern[str]] = {
    "colors": re.compile(r"--color-([A-Za-z][A-Za-z0-9-]*?)(-\d{2,3})?\s*:"),
    "spacing": re.compile(r"--(?:spacing|size)-([A-Za-z0-9][A-Za-z0-9.-]*)\s*:"),
    "text_sizes": re.compile(r"--(?:font-size|text)-([A-Za-z0-9][A-Za-z0-9.-]*)\s*:"),
    "fonts": re.compile(
        r"--(?:font-family|font(?!-size-|-family-|-weight-))-([A-Za-z][A-Za-z0-9-]*)\s*:"
    ),
}

_THEME_BLOCK_RE = re.compile(r"@theme\b[^{;]*\{")
_UTILITY_BLOCK_RE = re.compile(r"@utility\s+(?P<name>[A-Za-z0-9_-]+(?:-\*)?)\s*\{")
_COMMENT_RE = re.compile(r"/\*.*?(?:\*/|\Z)", re.DOTALL)

_COLOR_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")
_SCALE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.]*(?:-[A-Za-z0-9.]+)*$")
_FONT_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:-[A-Za-z0-9]+)*$")

# Semantic/system names that are not palette colours unless given a shade scale
SEMANTIC_COLOR_NAMES: frozenset[str] = frozenset(
    {
        "accent",
        "background",
        "border",
        "card",
        "chart",
        "destructive",
        "foreground",
        "input",
        "muted",
        "popover",
        "primary",
        "ring",
        "secondary",
        "sidebar",
    }
)


def _mask_comments(css_text: str) -> str:
    """Blank out comments while preserving offsets."""
    return _COMMENT_RE.sub(lambda m: " " * len(m.group()), css_text)


def _balanced_end(text: str, open_index: int) -> int | None:
    """Return the index just past the brace matching text[open_index], if any.

    Braces inside quoted strings (`content: "}"`) are not counted.
    """
    depth = 0
    quote: str | None = None
    index = open_index
    while index < len(text):
        char = text[index]
        if quote is not None:
            if char == "\\":
                index += 1
            elif char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    return None


def _iter_blocks(
    masked: str, pattern: re.Pattern[str]
) -> Iterator[tuple[re.Match[str], int, int]]:
    """Yield (match, start, end) for each terminated block opened by pattern."""
    position = 0
    while True:
        match = pattern.search(masked, position)
        if match is None:
            return
        end = _balanced_end(masked, match.end() - 1)
        if end is None:
            # Unterminated: nothing after this point can be captured reliably
            return
        yield match, match.start(), end
        position = end


class _Collector:
    """Mutable accumulator used while building a single TokenSet."""

    def __init__(self) -> None:
        self.colors: set[str] = set()
        self.spacing: set[str] = set()
        self.text_sizes: set[str] = set()
        self.fonts: set[str] = set()
        self.utilities: set[str] = set()
        self.utility_definitions: list[str] = []

    def add_color(self, name: str, *, scaled: bool) -> None:
        if not _COLOR_NAME_RE.match(name):
            return
        if not scaled:
            if name in SEMANTIC_COLOR_NAMES:
                return
            if name.split("-", 1)[0] in SEMANTIC_COLOR_NAMES:
                return
        self.colors.add(name)

    def add(self, category: str, name: str) -> None:
        if category == "colors":
            shade = _SHADE_SUFFIX_RE.match(name)
            if shade:
                self.add_color(shade.group("base"), scaled=True)
            else:
                self.add_color(name, scaled=False)
        elif category == "fonts":
            if _FONT_NAME_RE.match(name):
                self.fonts.add(name)
        elif _SCALE_NAME_RE.match(name):
            if category == "spacing":
                self.spacing.add(name)
            elif category == "text_sizes":
                self.text_sizes.add(name)

    def build(self) -> TokenSet:
        return TokenSet(
            colors=frozenset(self.colors),
            spacing=frozenset(self.spacing),
            text_sizes=frozenset(self.text_sizes),
            fonts=frozenset(self.fonts),
            utilities=frozenset(self.utilities),
            utility_definitions=tuple(self.utility_definitions),
        )


def _classify(collector: _Collector, variable: str) -> None:
    for prefix, category in _CATEGORY_PREFIXES:
        if variable.startswith(prefix):
            if category is not None:
                collector.add(category, variable[len(prefix) :])
            return
    shade = _SHADE_SUFFIX_RE.match(variable)
    if shade and variable.split("-", 1)[0] not in _NON_COLOR_SEGMENTS:
        collector.add_color(shade.group("base"), scaled=True)


def extract(css_text: str) -> TokenSet:
    """Parse raw CSS text into a categorized TokenSet.

    Never raises: malformed input (unterminated blocks, stray braces) only
    means fewer tokens are captured.
    """
    collector = _Collector()
    masked = _mask_comments(css_text)

    for match in _DECLARATION_RE.finditer(masked):
        _classify(collector, match.group(1))

    for _, start, end in _iter_blocks(masked, _THEME_BLOCK_RE):
        body = masked[start:end]
        for category, pattern in _THEME_PATTERNS.items():
            for match in pattern.finditer(body):
                if category == "colors":
                    collector.add_color(match.group(1), scaled=match.group(2) is not None)
                else:
                    collector.add(category, match.group(1))

    for match, start, end in _iter_blocks(masked, _UTILITY_BLOCK_RE):
        definition = css_text[start:end]
        if definition not in collector.utility_definitions:
            collector.utility_definitions.append(definition)
        name = match.group("name")
        if not name.endswith("-*"):
            collector.utilities.add(name)

    return collector.build()


def theme_files(theme_dir: Path) -> list[Path]:
    """List CSS files under the theme directory in a stable order."""
    if not theme_dir.is_dir():
        return []
    return sorted(path for path in theme_dir.rglob("*.css") if path.is_file())


def scan_theme_directory(theme_dir: Path) -> ThemeScan:
    """Extract and merge tokens from every CSS file under theme_dir.

    A file that cannot be read is logged and skipped; the remaining files
    still contribute. A missing directory yields an empty scan.
    """
    if not theme_dir.is_dir():
        logger.info(f"No theme directory at {theme_dir}, using baseline tokens only")
        return ThemeScan()

    files: list[Path] = []
    failed: list[Path] = []
    parts: list[TokenSet] = []
    for path in theme_files(theme_dir):
        try:
            css_text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping theme file {path}: {e}")
            failed.append(path)
            continue
        parts.append(extract(css_text))
        files.append(path)

    tokens = TokenSet().union(*parts)
    logger.info(
        f"Scanned {len(files)} theme file(s): {len(tokens.colors)} colors, "
        f"{len(tokens.spacing)} spacing, {len(tokens.text_sizes)} text sizes, "
        f"{len(tokens.fonts)} fonts, {len(tokens.utilities)} utilities"
    )
    return ThemeScan(tokens=tokens, files=files, failed=failed)
