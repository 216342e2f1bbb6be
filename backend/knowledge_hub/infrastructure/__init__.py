"""Infrastructure Layer — database session management and structured logging.

Invariants:
    - Infrastructure never imports from services/ or api/
    - SQLAlchemy exceptions escaping a request are mapped to DatabaseError

Design Decisions:
    - Dialect helpers live here so services stay free of engine details
"""
