# Compatibility entrypoint: keeps `uvicorn main:app` working.

from services.amr.app import app  # noqa: F401
