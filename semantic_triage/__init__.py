"""Semantic triage engine — embedding-based folder suggestions for a local-first email client."""

__version__ = "0.1.0"
