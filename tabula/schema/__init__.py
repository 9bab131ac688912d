"""Declarative schema description, introspection and synchronization."""
