"""Safelist stylesheet generation.

The preview compiles Tailwind v4 against a generated entry point that never
mentions the classes a component might use, so every class the workspace's
design tokens make possible is declared up front through `@source inline(...)`
directives (brace expansion keeps them compact).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from livepreview.logging import PreviewLogComponent, get_logger
from livepreview.models import TokenSet

logger = get_logger(PreviewLogComponent.SAFELIST)

FRAMEWORK_IMPORT = '@import "tailwindcss";'

SHADES: tuple[str, ...] = (
    "50",
    "100",
    "200",
    "300",
    "400",
    "500",
    "600",
    "700",
    "800",
    "900",
    "950",
)

DEFAULT_BREAKPOINTS: tuple[str, ...] = ("sm", "md", "lg", "xl", "2xl")

STATE_VARIANTS: tuple[str, ...] = (
    "hover",
    "focus",
    "active",
    "disabled",
    "dark",
    "group-hover",
    "peer-focus",
)

COLOR_UTILITIES: tuple[str, ...] = (
    "bg",
    "text",
    "border",
    "ring",
    "fill",
    "stroke",
    "shadow",
    "outline",
    "divide",
    "from",
    "via",
    "to",
)

SPECIAL_COLORS: tuple[str, ...] = (
    "black",
    "white",
    "transparent",
    "current",
    "inherit",
)

SPACING_UTILITIES: tuple[str, ...] = (
    "p",
    "px",
    "py",
    "pt",
    "pr",
    "pb",
    "pl",
    "gap",
    "gap-x",
    "gap-y",
    "space-x",
    "space-y",
    "w",
    "h",
    "size",
    "min-w",
    "min-h",
    "max-w",
    "max-h",
)

NEGATABLE_SPACING_UTILITIES: tuple[str, ...] = (
    "m",
    "mx",
    "my",
    "mt",
    "mr",
    "mb",
    "ml",
    "inset",
    "inset-x",
    "inset-y",
    "top",
    "right",
    "bottom",
    "left",
    "translate-x",
    "translate-y",
)

FONT_WEIGHTS: tuple[str, ...] = (
    "thin",
    "extralight",
    "light",
    "normal",
    "medium",
    "semibold",
    "bold",
    "extrabold",
    "black",
)

LEADING: tuple[str, ...] = ("none", "tight", "snug", "normal", "relaxed", "loose")
TRACKING: tuple[str, ...] = ("tighter", "tight", "normal", "wide", "wider", "widest")

LAYOUT_CLASSES: tuple[str, ...] = (
    "block",
    "inline-block",
    "inline",
    "flex",
    "inline-flex",
    "grid",
    "inline-grid",
    "hidden",
    "contents",
    "flex-row",
    "flex-row-reverse",
    "flex-col",
    "flex-col-reverse",
    "flex-wrap",
    "flex-nowrap",
    "flex-1",
    "flex-auto",
    "flex-initial",
    "flex-none",
    "grow",
    "grow-0",
    "shrink",
    "shrink-0",
    "items-start",
    "items-center",
    "items-end",
    "items-stretch",
    "items-baseline",
    "justify-start",
    "justify-center",
    "justify-end",
    "justify-between",
    "justify-around",
    "justify-evenly",
    "self-auto",
    "self-start",
    "self-center",
    "self-end",
    "self-stretch",
    "content-center",
    "content-between",
    "place-items-center",
    "place-content-center",
    "static",
    "relative",
    "absolute",
    "fixed",
    "sticky",
    "overflow-auto",
    "overflow-hidden",
    "overflow-scroll",
    "overflow-visible",
    "overflow-x-auto",
    "overflow-y-auto",
    "truncate",
    "text-left",
    "text-center",
    "text-right",
    "text-justify",
    "uppercase",
    "lowercase",
    "capitalize",
    "italic",
    "underline",
    "line-through",
    "no-underline",
    "rounded",
    "rounded-none",
    "rounded-sm",
    "rounded-md",
    "rounded-lg",
    "rounded-xl",
    "rounded-2xl",
    "rounded-3xl",
    "rounded-full",
    "border",
    "border-0",
    "border-2",
    "border-4",
    "border-t",
    "border-b",
    "border-l",
    "border-r",
    "shadow-sm",
    "shadow",
    "shadow-md",
    "shadow-lg",
    "shadow-xl",
    "shadow-2xl",
    "shadow-none",
    "opacity-0",
    "opacity-50",
    "opacity-75",
    "opacity-100",
    "cursor-pointer",
    "cursor-not-allowed",
    "pointer-events-none",
    "select-none",
    "transition",
    "transition-all",
    "transition-colors",
    "duration-150",
    "duration-200",
    "duration-300",
    "w-full",
    "w-screen",
    "w-auto",
    "w-fit",
    "h-full",
    "h-screen",
    "h-auto",
    "h-fit",
    "min-h-screen",
    "mx-auto",
    "bg-gradient-to-r",
    "bg-gradient-to-l",
    "bg-gradient-to-t",
    "bg-gradient-to-b",
    "bg-gradient-to-br",
    "bg-gradient-to-bl",
    "bg-gradient-to-tr",
    "bg-gradient-to-tl",
    "sr-only",
)

GRID_COLUMNS: tuple[str, ...] = tuple(str(n) for n in range(1, 13))


def baseline_tokens() -> TokenSet:
    """Framework tokens every stylesheet covers regardless of the workspace."""
    return TokenSet(
        colors=frozenset(
            {
                "slate",
                "gray",
                "zinc",
                "neutral",
                "stone",
                "red",
                "orange",
                "amber",
                "yellow",
                "lime",
                "green",
                "emerald",
                "teal",
                "cyan",
                "sky",
                "blue",
                "indigo",
                "violet",
                "purple",
                "fuchsia",
                "pink",
                "rose",
            }
        ),
        spacing=frozenset(
            {"0", "px", "0.5", "1", "1.5", "2", "2.5", "3", "3.5"}
            | {str(n) for n in (4, 5, 6, 7, 8, 9, 10, 11, 12, 14, 16, 20, 24)}
            | {str(n) for n in (28, 32, 36, 40, 44, 48, 52, 56, 60, 64, 72, 80, 96)}
        ),
        text_sizes=frozenset(
            {"xs", "sm", "base", "lg", "xl", "2xl", "3xl", "4xl", "5xl"}
            | {"6xl", "7xl", "8xl", "9xl"}
        ),
        fonts=frozenset({"sans", "serif", "mono"}),
    )


_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")


def _natural_key(value: str) -> tuple[tuple[str | float, ...], str]:
    """Sort key that orders `2` before `10` and `xl` before `2xl` deterministically."""
    parts = _NUMBER_RE.split(value)
    key: list[str | float] = [
        float(part) if index % 2 else part for index, part in enumerate(parts)
    ]
    return tuple(key), value


def _ordered(items: Iterable[str]) -> list[str]:
    return sorted(set(items), key=_natural_key)


def _brace(items: Iterable[str]) -> str | None:
    values = _ordered(items)
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return "{" + ",".join(values) + "}"


def _prefix_group(prefixes: Iterable[str]) -> str:
    """Brace group of `prefix:` alternatives that also allows no prefix.

    Prefixes keep their configured order (breakpoints run small to large).
    """
    values = [""] + [f"{prefix}:" for prefix in dict.fromkeys(prefixes)]
    if len(values) == 1:
        return ""
    return "{" + ",".join(values) + "}"


class SafelistGenerator:
    """Expands token sets into an exhaustive utility-class inclusion stylesheet.

    Output is a pure function of its inputs: every collection is sorted before
    interpolation, so sets that compare equal always render byte-identical
    text regardless of discovery order.
    """

    def __init__(
        self,
        *,
        breakpoints: Sequence[str] = DEFAULT_BREAKPOINTS,
        variants: Sequence[str] = STATE_VARIANTS,
        shades: Sequence[str] = SHADES,
    ):
        self.breakpoints: tuple[str, ...] = tuple(breakpoints)
        self.variants: tuple[str, ...] = tuple(variants)
        self.shades: tuple[str, ...] = tuple(shades)

    def _directive(self, *segments: str | None, variants: bool = False) -> str | None:
        if any(segment is None for segment in segments):
            return None
        pattern = _prefix_group(self.breakpoints)
        if variants:
            pattern += _prefix_group(self.variants)
        pattern += "".join(segment for segment in segments if segment is not None)
        return f'@source inline("{pattern}");'

    def _sections(self, tokens: TokenSet) -> list[tuple[str, list[str | None]]]:
        color_utilities = _brace(COLOR_UTILITIES)
        return [
            (
                "Colors",
                [
                    self._directive(
                        color_utilities,
                        "-",
                        _brace(tokens.colors),
                        "-",
                        _brace(self.shades),
                        variants=True,
                    ),
                    # Colours declared without a shade only define the bare class
                    self._directive(
                        color_utilities, "-", _brace(tokens.colors), variants=True
                    ),
                    self._directive(
                        color_utilities, "-", _brace(SPECIAL_COLORS), variants=True
                    ),
                ],
            ),
            (
                "Spacing",
                [
                    self._directive(
                        _brace(SPACING_UTILITIES), "-", _brace(tokens.spacing)
                    ),
                    self._directive(
                        "{,-}",
                        _brace(NEGATABLE_SPACING_UTILITIES),
                        "-",
                        _brace(tokens.spacing),
                    ),
                ],
            ),
            (
                "Typography",
                [
                    self._directive("text-", _brace(tokens.text_sizes)),
                    self._directive("font-", _brace(tokens.fonts)),
                    self._directive("font-", _brace(FONT_WEIGHTS)),
                    self._directive("leading-", _brace(LEADING)),
                    self._directive("tracking-", _brace(TRACKING)),
                ],
            ),
            (
                "Layout",
                [
                    self._directive(_brace(LAYOUT_CLASSES)),
                    self._directive(
                        "{grid-cols,col-span,grid-rows,row-span}-",
                        _brace(GRID_COLUMNS),
                    ),
                ],
            ),
        ]

    def generate(
        self,
        baseline: TokenSet,
        discovered: TokenSet,
        *,
        sources: Sequence[str] = (),
    ) -> str:
        """Render the stylesheet for baseline plus discovered tokens.

        Args:
            baseline: Framework tokens (see `baseline_tokens`)
            discovered: Tokens extracted from the workspace theme
            sources: Import specifiers of the theme files, relative to the
                stylesheet. Imported files carry their own `@utility` blocks;
                without sources the captured definitions are inlined instead.

        Returns:
            Stylesheet text starting with the framework import
        """
        tokens = baseline.union(discovered)

        lines: list[str] = [FRAMEWORK_IMPORT]
        lines.extend(f"@import {_css_string(source)};" for source in sorted(set(sources)))
        lines.append("")
        lines.append("/* Generated by livepreview; regenerated on every theme change. */")

        for title, directives in self._sections(tokens):
            rendered = [directive for directive in directives if directive is not None]
            if not rendered:
                continue
            lines.append("")
            lines.append(f"/* {title} */")
            lines.extend(rendered)

        utilities = _brace(tokens.utilities)
        if utilities is not None:
            lines.append("")
            lines.append("/* Custom utilities */")
            lines.append(f'@source inline("{utilities}");')

        if not sources and tokens.utility_definitions:
            lines.append("")
            lines.extend(
                definition.strip() for definition in sorted(tokens.utility_definitions)
            )

        logger.debug(
            f"Generated safelist with {len(tokens.colors)} colors and "
            f"{len(tokens.utilities)} custom utilities"
        )
        return "\n".join(lines) + "\n"


def _css_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def generate_stylesheet(discovered: TokenSet, *, sources: Sequence[str] = ()) -> str:
    """Render the stylesheet for discovered tokens over the framework baseline."""
    return SafelistGenerator().generate(baseline_tokens(), discovered, sources=sources)
