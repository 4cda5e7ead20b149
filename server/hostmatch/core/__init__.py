"""Configuration, persistence, errors and observability."""
