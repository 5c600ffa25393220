"""Rate limit storage adapters.

This package provides a small abstraction layer so the decision engine can run
against Redis in production and an in-memory store in tests or single-process
deployments without changing the engine or the API layer.
"""
