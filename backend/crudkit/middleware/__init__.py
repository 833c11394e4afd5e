# Middleware package init
"""
crudkit Backend — Middleware Package
=====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    - Request ID first, so every later log line can carry it
    - Access log wraps everything below it, so its duration covers the
      full handling time and it sees the final status code
"""
