"""SQLAlchemy-backed identity store."""
