"""Global constants for livepreview."""

# Dev server defaults (the embedding iframe points at this origin)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5174
# {host} and {port} placeholders are substituted when the server is spawned
DEFAULT_DEV_SERVER_COMMAND = (
    "bun",
    "x",
    "vite",
    "--host",
    "{host}",
    "--port",
    "{port}",
    "--strictPort",
)

# Workspace layout

PROJECT_DIR_NAME = ".livepreview"
PROJECT_CONFIG_NAME = "project.json"
DEFAULT_THEME_DIR = "src/theme"

# Staging directory outputs

DEFAULT_STYLESHEET_NAME = "tailwind.css"
DEFAULT_ENTRY_NAME = "index.jsx"
INDEX_HTML_NAME = "index.html"
VITE_CONFIG_NAME = "vite.config.js"

# Timing

DEFAULT_WATCH_DEBOUNCE_MS = 300
DEFAULT_READY_TIMEOUT = 30.0
READY_POLL_INTERVAL = 0.1

# Environment overrides (read after the workspace .env is loaded)

ENV_HOST = "LIVEPREVIEW_HOST"
ENV_PORT = "LIVEPREVIEW_PORT"
ENV_COMMAND = "LIVEPREVIEW_COMMAND"

TEST_COMPONENT_MESSAGE = "Component Preview Ready"
