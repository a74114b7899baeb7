"""HTTP layer."""

from loan_servicing.api.app import create_app

__all__ = ["create_app"]
