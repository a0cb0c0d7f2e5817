"""
HTTP routes: ``/auth`` proxies the auth service, ``/service`` is the catalogue.
"""
from catalogue.routers import auth, service

__all__ = ["auth", "service"]
