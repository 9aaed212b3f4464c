"""ASGI entrypoint for the castbooth API."""

from castbooth.api.app import create_app, create_error_app
from castbooth.containers import build_container
from castbooth.errors import ConfigError

try:
    app = create_app(build_container())
except ConfigError as exc:
    app = create_error_app(exc)
