"""pipespine HTTP facade (FastAPI)."""

from pipespine.api.app import create_app

__all__ = ["create_app"]
