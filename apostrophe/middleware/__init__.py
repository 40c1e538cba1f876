# Middleware package init
"""
Apostrophe Backend — Middleware Package
=========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID: Generate correlation ID for logging and error bodies
    2. Logging: Log request details with the generated request ID
    3. CORS: The editor front end runs on its own origin

    The order is reversed for responses, so the logging middleware sees the
    final status code and the request ID header is added last.
"""
