"""Service layer for the order lifecycle."""
