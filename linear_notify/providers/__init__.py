"""Remote notification providers."""
