"""API routers, mounted under the ``/api/v1`` prefix."""
