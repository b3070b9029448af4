"""ASGI entry point: ``uvicorn flowauth.main:app``."""
from .factory import create_app

app = create_app()
