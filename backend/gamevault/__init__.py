"""GameVault: match local game folders to Steam store entries."""

__version__ = "0.1.0"
