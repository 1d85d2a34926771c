"""Settings for aissist-backup."""
