"""Shared utilities for the Chimera gateway."""
