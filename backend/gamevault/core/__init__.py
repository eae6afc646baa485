"""Core matching, catalog and storage services for GameVault."""
