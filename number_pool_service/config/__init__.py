"""Configuration for the number pool service."""
