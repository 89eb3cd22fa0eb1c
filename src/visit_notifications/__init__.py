"""Visit gating, batching and notification for posts and taxonomy terms."""

__version__ = "3.1.0"
