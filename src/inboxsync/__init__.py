"""Mail synchronization and composition over the Gmail API."""
