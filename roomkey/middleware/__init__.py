"""Middleware module for roomkey."""

from roomkey.middleware.tenant import TenantResolutionMiddleware

__all__ = ["TenantResolutionMiddleware"]
