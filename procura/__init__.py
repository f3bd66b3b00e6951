"""Quote pricing, multi-request bundling and optimistic updates for restaurant procurement."""

__version__ = "0.1.0"
