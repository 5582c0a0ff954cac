"""Tenant-scoped storage: protocols in ``base``, SQLAlchemy in ``sql``."""
from feedback_engine.repositories.base import Storage  # noqa: F401
from feedback_engine.repositories.sql import SQLStorage  # noqa: F401
