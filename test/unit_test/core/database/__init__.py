"""Unit tests for the database layer: entities, repositories and engine helpers."""
