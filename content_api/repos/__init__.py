"""
Repository layer for data access operations.

This package contains repository modules that encapsulate the SQLAlchemy
statements for posts, the category closure tree and pagination.
"""
