"""Persistence adapters.

Services talk to storage through ``AbstractRepository``; the concrete driver
is chosen when the application is assembled.
"""
