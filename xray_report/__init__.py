"""X-ray upload -> vision model -> report service."""

__version__ = "0.1.0"
