"""Elasticsearch sync and reindex service for test-management entities."""
