"""Restore providers: one adapter per supported target data store."""
