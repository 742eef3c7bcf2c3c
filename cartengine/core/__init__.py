"""Core utilities: configuration, constants, errors, money and caching."""
