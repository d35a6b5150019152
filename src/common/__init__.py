"""
Common building blocks shared by the intake service.

This package contains reusable, domain-agnostic code:

- configuration loading (environment variables)
- record types for rows of the transactional store
- store and blob storage API clients
- retry/backoff helpers and the OpenAI-compatible chat call
- logging configuration
"""
