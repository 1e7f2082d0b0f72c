"""Entry-point generation for the preview bundle."""

from __future__ import annotations

import json
import math
from collections.abc import Iterable
from pathlib import Path

import jinja2

from livepreview.constants import DEFAULT_STYLESHEET_NAME, TEST_COMPONENT_MESSAGE
from livepreview.errors import PropSerializationError
from livepreview.logging import PreviewLogComponent, get_logger
from livepreview.models import ComponentDescriptor, Prop, PropType
from livepreview.paths import relative_import_path
from livepreview.utils import templates_environment

logger = get_logger(PreviewLogComponent.ENTRY)


def _number_literal(prop: Prop) -> str:
    text = prop.default_value.strip()
    try:
        return str(int(text))
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        raise PropSerializationError(
            f"Prop '{prop.name}' has type number but default {prop.default_value!r} is not numeric"
        )
    if not math.isfinite(value):
        raise PropSerializationError(
            f"Prop '{prop.name}' default {prop.default_value!r} is not a finite number"
        )
    return repr(value)


def serialize_prop_value(prop: Prop, *, allow_function_props: bool = False) -> str:
    """Serialize a prop's textual default into a JavaScript expression.

    Args:
        prop: The prop to serialize
        allow_function_props: Whether function defaults may be inlined. The
            text is emitted unescaped as executable code, so this must only be
            enabled for trusted workspaces.

    Returns:
        A JavaScript expression (without JSX braces)

    Raises:
        PropSerializationError: If the default cannot be emitted
    """
    if prop.type == PropType.string:
        return json.dumps(prop.default_value)
    if prop.type == PropType.boolean:
        return "true" if prop.default_value.strip().lower() == "true" else "false"
    if prop.type == PropType.number:
        return _number_literal(prop)
    if prop.type in (PropType.array, PropType.object):
        if not prop.default_value.strip():
            return "[]" if prop.type == PropType.array else "{}"
        return prop.default_value

    # Function defaults are inlined as code, never escaped
    if not allow_function_props:
        raise PropSerializationError(
            f"Prop '{prop.name}' has a function default; enable "
            "allow_function_props to inline it as code"
        )
    return prop.default_value


def jsx_attributes(
    props: Iterable[Prop], *, allow_function_props: bool = False
) -> list[str]:
    """Render props as JSX attributes (`name={expression}`), preserving order."""
    return [
        f"{prop.name}={{{serialize_prop_value(prop, allow_function_props=allow_function_props)}}}"
        for prop in props
    ]


class EntryPointGenerator:
    """Renders the program that imports and mounts the previewed component."""

    def __init__(
        self,
        *,
        stylesheet_name: str = DEFAULT_STYLESHEET_NAME,
        allow_function_props: bool = False,
        environment: jinja2.Environment | None = None,
    ):
        self.stylesheet_name: str = stylesheet_name
        self.allow_function_props: bool = allow_function_props
        self._env: jinja2.Environment = environment or templates_environment()

    @property
    def _stylesheet_specifier(self) -> str:
        return json.dumps(f"./{self.stylesheet_name}")

    def generate(self, descriptor: ComponentDescriptor, preview_root: Path) -> str:
        """Render the entry source for a component.

        Args:
            descriptor: Component to import and mount
            preview_root: Directory the entry file is written to

        Returns:
            JSX source text

        Raises:
            PropSerializationError: If a prop default cannot be emitted
        """
        import_path = relative_import_path(preview_root, descriptor.path)
        attributes = jsx_attributes(
            descriptor.props, allow_function_props=self.allow_function_props
        )
        template = self._env.get_template("entry.jsx.jinja2")
        source = template.render(  # pyright:ignore[reportUnknownMemberType]
            name=descriptor.name,
            import_specifier=json.dumps(import_path),
            stylesheet_specifier=self._stylesheet_specifier,
            default_export=descriptor.default_export,
            attributes=attributes,
        )
        logger.debug(f"Rendered entry for {descriptor.name} importing {import_path}")
        return source

    def generate_test(self, message: str = TEST_COMPONENT_MESSAGE) -> str:
        """Render a placeholder entry that needs no component.

        Used to confirm the bundler, stylesheet and iframe are wired up before
        any real component is loaded.
        """
        template = self._env.get_template("test_entry.jsx.jinja2")
        return template.render(  # pyright:ignore[reportUnknownMemberType]
            stylesheet_specifier=self._stylesheet_specifier,
            message_literal=json.dumps(message),
        )
