"""Cache store adapters.

Every component that needs the shared cache (rate limiter, read-through cache)
depends on ``AbstractCacheStore`` so the backend (Redis or in-process) can be
chosen by configuration without touching callers.
"""
