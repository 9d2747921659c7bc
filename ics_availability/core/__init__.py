"""Configuration, logging, HTTP client and key/value storage."""
