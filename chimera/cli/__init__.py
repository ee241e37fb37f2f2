"""Command-line interface for the Chimera gateway."""
