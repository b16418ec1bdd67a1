"""Configuration settings and validation."""
