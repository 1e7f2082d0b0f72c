"""Preview commands: run the dev server and inspect generated output."""

import asyncio
from collections import deque
from pathlib import Path
from typing import Annotated

from rich.markup import escape
from rich.table import Table
from typer import Argument, Exit, Option

from livepreview.components import (
    PropStore,
    describe_component,
    discover_components,
    parse_prop_spec,
)
from livepreview.config import load_settings
from livepreview.entrypoint import EntryPointGenerator
from livepreview.errors import PreviewError
from livepreview.logging import LogBuffer, configure_logging, print_log_entry
from livepreview.models import ComponentDescriptor, PreviewSettings, Prop
from livepreview.paths import relative_import_path
from livepreview.safelist import generate_stylesheet
from livepreview.server import PreviewRegistry
from livepreview.tokens import scan_theme_directory
from livepreview.utils import console, is_bun_installed

DEFAULT_STAGING = Path(".livepreview") / "staging"
LOG_REPLAY_LINES = 200


def _parse_props(specs: list[str] | None) -> list[Prop]:
    props: list[Prop] = []
    for spec in specs or []:
        try:
            props.append(parse_prop_spec(spec))
        except ValueError as e:
            console.print(f"[red]❌ Invalid prop '{escape(spec)}': {escape(str(e))}[/red]")
            raise Exit(code=1)
    return props


def _load_settings(workspace: Path) -> PreviewSettings:
    try:
        return load_settings(workspace)
    except PreviewError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise Exit(code=1)


async def _run_preview(
    workspace: Path,
    staging_dir: Path,
    settings: PreviewSettings,
    descriptor: ComponentDescriptor | None,
) -> None:
    registry = PreviewRegistry()
    manager = registry.get_or_create(workspace, staging_dir, settings=settings)
    try:
        await manager.start()
        if descriptor is None:
            manager.set_test_component()
        else:
            manager.update_component(descriptor)
        console.print(f"[green]✅ Preview running at {manager.get_server_url()}[/green]")
        console.print("[dim]Press Ctrl+C to stop[/dim]")
        await asyncio.Event().wait()
    finally:
        await registry.dispose_all()


def start(
    workspace: Annotated[
        Path | None,
        Argument(
            help="The workspace to preview from. If not provided, current working directory will be used"
        ),
    ] = None,
    staging: Annotated[
        Path | None,
        Option(
            "--staging",
            help="Directory the dev server serves, relative to the workspace",
        ),
    ] = None,
    component: Annotated[
        Path | None,
        Option("--component", "-c", help="Component file to load after start"),
    ] = None,
    prop: Annotated[
        list[str] | None,
        Option("--prop", "-p", help="Prop as name:type=value (repeatable)"),
    ] = None,
    allow_function_props: Annotated[
        bool,
        Option(
            "--allow-function-props",
            help="Inline function prop defaults as code (trusted workspaces only)",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        Option(
            "--quiet",
            "-q",
            help="Hide logs; replay the recent ones only if the server fails",
        ),
    ] = False,
) -> None:
    """Start the preview server and tail its logs until Ctrl+C."""
    workspace = (workspace or Path.cwd()).resolve()
    staging_dir = workspace / (staging or DEFAULT_STAGING)
    settings = _load_settings(workspace)
    if allow_function_props:
        settings = settings.model_copy(update={"allow_function_props": True})

    if settings.command and settings.command[0] == "bun" and not is_bun_installed():
        console.print(
            "[red]❌ bun is not installed. Please install bun to continue.[/red]"
        )
        raise Exit(code=1)

    descriptor: ComponentDescriptor | None = None
    if component is not None:
        component = component.resolve()
        props = _parse_props(prop) if prop else PropStore(workspace).get_props(component.stem)
        try:
            descriptor = describe_component(component, props)
        except (PreviewError, ValueError) as e:
            console.print(f"[red]❌ {escape(str(e))}[/red]")
            raise Exit(code=1)

    log_buffer: LogBuffer | None = deque(maxlen=LOG_REPLAY_LINES) if quiet else None
    configure_logging(buffer=log_buffer, console_output=not quiet)
    staging_dir.mkdir(parents=True, exist_ok=True)
    try:
        asyncio.run(_run_preview(workspace, staging_dir, settings, descriptor))
    except KeyboardInterrupt:
        console.print("[yellow]Preview stopped[/yellow]")
    except PreviewError as e:
        for entry in log_buffer or ():
            print_log_entry(entry)
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise Exit(code=1)


def tokens(
    workspace: Annotated[
        Path | None,
        Argument(help="The workspace to scan. Defaults to the current directory"),
    ] = None,
) -> None:
    """Show the design tokens discovered in the workspace theme."""
    workspace = (workspace or Path.cwd()).resolve()
    settings = _load_settings(workspace)
    scan = scan_theme_directory(workspace / settings.theme_dir)

    if not scan.files:
        console.print(f"[yellow]No theme CSS found under {settings.theme_dir}[/yellow]")

    table = Table(title="Design tokens")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Tokens")
    for category, values in (
        ("colors", scan.tokens.colors),
        ("spacing", scan.tokens.spacing),
        ("text sizes", scan.tokens.text_sizes),
        ("fonts", scan.tokens.fonts),
        ("utilities", scan.tokens.utilities),
    ):
        table.add_row(category, str(len(values)), ", ".join(sorted(values)))
    console.print(table)

    for path in scan.failed:
        console.print(f"[red]Could not read {path}[/red]")


def safelist(
    workspace: Annotated[
        Path | None,
        Argument(help="The workspace to scan. Defaults to the current directory"),
    ] = None,
    output: Annotated[
        Path | None,
        Option("--output", "-o", help="Write the stylesheet here instead of stdout"),
    ] = None,
) -> None:
    """Generate the safelist stylesheet for the workspace theme."""
    workspace = (workspace or Path.cwd()).resolve()
    settings = _load_settings(workspace)
    scan = scan_theme_directory(workspace / settings.theme_dir)

    if output is None:
        print(generate_stylesheet(scan.tokens), end="")
        return

    output = output.resolve()
    sources = [relative_import_path(output.parent, path) for path in scan.files]
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(generate_stylesheet(scan.tokens, sources=sources), encoding="utf-8")
    console.print(f"[green]✅ Wrote {output}[/green]")


def entry(
    component: Annotated[Path, Argument(help="Component file to import")],
    staging: Annotated[
        Path | None,
        Option("--staging", help="Directory the entry would be written to"),
    ] = None,
    prop: Annotated[
        list[str] | None,
        Option("--prop", "-p", help="Prop as name:type=value (repeatable)"),
    ] = None,
    default_export: Annotated[
        bool, Option("--default-export", help="Import the component as default export")
    ] = False,
    allow_function_props: Annotated[
        bool,
        Option("--allow-function-props", help="Inline function prop defaults as code"),
    ] = False,
) -> None:
    """Print the entry point generated for a component."""
    props = _parse_props(prop)
    generator = EntryPointGenerator(allow_function_props=allow_function_props)
    staging_dir = (staging or Path.cwd()).resolve()
    try:
        descriptor = describe_component(component, props, default_export=default_export)
        source = generator.generate(descriptor, staging_dir)
    except (PreviewError, ValueError) as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise Exit(code=1)
    print(source, end="")


def components(
    folder: Annotated[
        Path | None,
        Argument(help="Folder to list. Defaults to the current directory"),
    ] = None,
) -> None:
    """List the component files in a folder that can be previewed."""
    folder = (folder or Path.cwd()).resolve()
    found = discover_components(folder)
    if not found:
        console.print(f"[yellow]No components found in {folder}[/yellow]")
        return
    for path in found:
        console.print(f"[cyan]{path.stem}[/cyan]  [dim]{path}[/dim]")
