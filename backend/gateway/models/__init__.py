"""ORM Models — SQLAlchemy declarative models for the application store.

Design Decisions:
    - One file per entity
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from gateway.models.app import App  # noqa: F401
from gateway.models.app_api_channel import AppApiChannel  # noqa: F401
