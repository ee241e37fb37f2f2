"""
Chimera: AI capability gateway for the animal-mixing installation.
"""

__version__ = "0.1.0"
