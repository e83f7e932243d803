"""Cross-cutting platform helpers: errors and clock."""
