"""Management web API."""
