"""Memory Vault: a personal file vault backed by an embedded DuckDB store."""
