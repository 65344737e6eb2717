"""Database Package — SQLAlchemy declarative Base for the application store.

Design Decisions:
    - asyncpg driver for PostgreSQL (native async, no thread pool overhead)
"""
