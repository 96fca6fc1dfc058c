"""
Shared API
==========

Middleware, exception handlers and dependency providers for FastAPI.
"""
