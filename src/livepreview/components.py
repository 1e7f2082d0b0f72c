"""Component discovery and the per-component prop store."""

from __future__ import annotations

from pathlib import Path

from livepreview.config import (
    get_or_create_config,
    project_config_path,
    write_project_config,
)
from livepreview.models import (
    JS_IDENTIFIER_RE,
    ComponentDescriptor,
    Prop,
    ProjectConfig,
    PropType,
)

COMPONENT_SUFFIXES: tuple[str, ...] = (".tsx", ".jsx")


def parse_prop_spec(spec: str) -> Prop:
    """Parse a `name:type=value` prop spec (`label:string=Hi`, `disabled:boolean`).

    The value is everything after the first `=` and may be omitted; the type
    defaults to string when the `:type` part is missing.

    Raises:
        ValueError: If the name or type is invalid
    """
    head, _, value = spec.partition("=")
    name, _, type_name = head.partition(":")
    prop_type = PropType.from_string(type_name.strip()) if type_name else PropType.string
    return Prop(name=name.strip(), type=prop_type, default_value=value)


def discover_components(folder: Path) -> list[Path]:
    """List previewable component files directly inside a folder.

    Files whose stem is not a valid component name (`Button.test.tsx`,
    `my-button.tsx`) are skipped.

    Args:
        folder: Directory to list; not searched recursively

    Returns:
        Absolute paths sorted by file name
    """
    if not folder.is_dir():
        return []
    return sorted(
        path.resolve()
        for path in folder.iterdir()
        if path.is_file()
        and path.suffix in COMPONENT_SUFFIXES
        and JS_IDENTIFIER_RE.match(path.stem)
    )


def describe_component(
    path: Path, props: list[Prop] | None = None, *, default_export: bool = False
) -> ComponentDescriptor:
    """Build a descriptor for a component file, named after its stem."""
    return ComponentDescriptor(
        name=path.stem,
        path=path.resolve(),
        props=props or [],
        default_export=default_export,
    )


class PropStore:
    """Props configured per component, persisted in the workspace project config."""

    def __init__(self, workspace: Path):
        self.workspace: Path = workspace
        self._config: ProjectConfig = get_or_create_config(workspace)

    @property
    def components(self) -> list[str]:
        return sorted(self._config.props)

    def get_props(self, component: str) -> list[Prop]:
        return list(self._config.props.get(component, []))

    def add_prop(self, component: str, prop: Prop) -> list[Prop]:
        """Add a prop, replacing any existing prop of the same name in place."""
        props = self.get_props(component)
        for index, existing in enumerate(props):
            if existing.name == prop.name:
                props[index] = prop
                break
        else:
            props.append(prop)
        return self._save(component, props)

    def remove_prop(self, component: str, name: str) -> list[Prop]:
        """Remove a prop by name.

        Raises:
            KeyError: If the component has no prop with that name
        """
        props = self.get_props(component)
        remaining = [prop for prop in props if prop.name != name]
        if len(remaining) == len(props):
            raise KeyError(f"Component '{component}' has no prop '{name}'")
        return self._save(component, remaining)

    def update_prop(self, component: str, name: str, default_value: str) -> list[Prop]:
        """Change the default value of an existing prop.

        Raises:
            KeyError: If the component has no prop with that name
        """
        props = self.get_props(component)
        for index, existing in enumerate(props):
            if existing.name == name:
                props[index] = existing.model_copy(
                    update={"default_value": default_value}
                )
                return self._save(component, props)
        raise KeyError(f"Component '{component}' has no prop '{name}'")

    def _save(self, component: str, props: list[Prop]) -> list[Prop]:
        if props:
            self._config.props[component] = props
        else:
            self._config.props.pop(component, None)
        write_project_config(project_config_path(self.workspace), self._config)
        return list(props)
