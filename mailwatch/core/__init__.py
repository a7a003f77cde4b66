"""Core configuration, logging and credentials."""
