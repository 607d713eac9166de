"""Rate limiting adapters.

Policies and results live in ``base``; the fixed-window limiter keeps its
counters in the shared cache store so every worker enforces the same budget.
"""
