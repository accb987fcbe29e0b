"""
Database layer: SQLAlchemy models, async engine and repository implementations.
"""
