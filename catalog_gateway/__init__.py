"""Federated catalog search gateway (legacy scraped catalog + YCL digital catalog)."""

__version__ = "1.0.0"
