from typer import Typer

from livepreview.cli.preview import components, entry, safelist, start, tokens
from livepreview.cli.props import props_app

app = Typer(
    name="livepreview",
    help="Live component previews with design-token aware styling",
    no_args_is_help=True,
)

app.command(name="start", help="Start the preview server and tail logs until Ctrl+C")(
    start
)
app.command(name="tokens", help="Show design tokens discovered in the theme")(tokens)
app.command(name="safelist", help="Generate the safelist stylesheet")(safelist)
app.command(name="entry", help="Print the entry point for a component")(entry)
app.command(name="components", help="List previewable components in a folder")(
    components
)
app.add_typer(props_app)


if __name__ == "__main__":
    app()
