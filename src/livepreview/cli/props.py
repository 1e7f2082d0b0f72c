"""Prop store commands for the livepreview CLI."""

from pathlib import Path
from typing import Annotated

from rich.markup import escape
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from livepreview.components import PropStore, parse_prop_spec
from livepreview.errors import PreviewError
from livepreview.models import Prop
from livepreview.utils import console

props_app = Typer(name="props", help="Manage the default props stored per component")

WorkspaceOption = Annotated[
    Path | None,
    Option(
        "--workspace",
        "-w",
        help="Workspace holding the prop store. Defaults to the current directory",
    ),
]


def _store(workspace: Path | None) -> PropStore:
    try:
        return PropStore((workspace or Path.cwd()).resolve())
    except PreviewError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise Exit(code=1)


def _print_props(component: str, props: list[Prop]) -> None:
    if not props:
        console.print(f"[yellow]No props stored for {component}[/yellow]")
        return
    table = Table(title=f"Props for {component}")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Default")
    for prop in props:
        table.add_row(prop.name, prop.type.value, prop.default_value)
    console.print(table)


@props_app.command(name="list", help="Show stored props for a component")
def props_list(
    component: Annotated[str, Argument(help="Component name (file stem)")],
    workspace: WorkspaceOption = None,
) -> None:
    store = _store(workspace)
    _print_props(component, store.get_props(component))


@props_app.command(name="add", help="Add or replace a prop (name:type=value)")
def props_add(
    component: Annotated[str, Argument(help="Component name (file stem)")],
    spec: Annotated[str, Argument(help="Prop as name:type=value")],
    workspace: WorkspaceOption = None,
) -> None:
    try:
        prop = parse_prop_spec(spec)
    except ValueError as e:
        console.print(f"[red]❌ Invalid prop '{escape(spec)}': {escape(str(e))}[/red]")
        raise Exit(code=1)

    store = _store(workspace)
    _print_props(component, store.add_prop(component, prop))


@props_app.command(name="remove", help="Remove a prop by name")
def props_remove(
    component: Annotated[str, Argument(help="Component name (file stem)")],
    name: Annotated[str, Argument(help="Prop name")],
    workspace: WorkspaceOption = None,
) -> None:
    store = _store(workspace)
    try:
        props = store.remove_prop(component, name)
    except KeyError as e:
        console.print(f"[red]❌ {e.args[0]}[/red]")
        raise Exit(code=1)
    _print_props(component, props)


@props_app.command(name="set", help="Change the default value of a stored prop")
def props_set(
    component: Annotated[str, Argument(help="Component name (file stem)")],
    name: Annotated[str, Argument(help="Prop name")],
    value: Annotated[str, Argument(help="New default value")],
    workspace: WorkspaceOption = None,
) -> None:
    store = _store(workspace)
    try:
        props = store.update_prop(component, name, value)
    except KeyError as e:
        console.print(f"[red]❌ {e.args[0]}[/red]")
        raise Exit(code=1)
    _print_props(component, props)
