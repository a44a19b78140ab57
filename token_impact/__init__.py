"""Multi-venue order-book quote aggregation and price-impact calculation."""

__version__ = "0.1.0"
