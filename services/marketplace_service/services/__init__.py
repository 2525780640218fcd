"""Order/inventory domain services for the marketplace."""
