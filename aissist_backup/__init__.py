"""Backup and restore engine for aissist storage directories."""
