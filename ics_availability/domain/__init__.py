"""Availability engine, feed cache, rate limiter and request orchestration."""
