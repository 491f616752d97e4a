"""Shared helpers: logging utilities and the HTTP client."""
