"""snaprestore: browse object-store backups and restore them into data stores."""

__version__ = "0.3.0"
