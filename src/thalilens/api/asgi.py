"""ASGI entrypoint for the ThaliLens API."""

from thalilens.api.app import create_app
from thalilens.containers import build_container

app = create_app(build_container())
