"""Search document projection, indexing and reindex services."""
