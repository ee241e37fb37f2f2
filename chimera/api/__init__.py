"""HTTP API for the Chimera gateway."""
