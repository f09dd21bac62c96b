"""Origins on-chain position recommender."""

__version__ = "0.1.0"
