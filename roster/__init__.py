"""User and company services that keep cross-service references in sync."""

from __future__ import annotations

from typing import Any

from .database import CompanyStore, UserStore


def create_user_app(*args: Any, **kwargs: Any):
    """Factory function that returns the user service application."""

    from .user_api import create_user_app as _create_user_app

    return _create_user_app(*args, **kwargs)


def create_company_app(*args: Any, **kwargs: Any):
    """Factory function that returns the company service application."""

    from .company_api import create_company_app as _create_company_app

    return _create_company_app(*args, **kwargs)


def create_application(*args: Any, **kwargs: Any):
    """Factory function for the combined single-process application."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "CompanyStore",
    "UserStore",
    "create_application",
    "create_company_app",
    "create_user_app",
]
