"""Command-line interface for aissist-backup."""
