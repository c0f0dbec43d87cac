"""Cross-cutting infrastructure (logging)."""
