"""Shared configuration, connection and CLI plumbing."""
