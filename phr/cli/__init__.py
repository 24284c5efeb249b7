"""Command-line interface for PhotoReturns."""
