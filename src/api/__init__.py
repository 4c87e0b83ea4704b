"""
HTTP API for claim intake.
"""

from .app import Principal, create_app, get_principal, token_resolver

__all__ = [
    "Principal",
    "create_app",
    "get_principal",
    "token_resolver",
]
