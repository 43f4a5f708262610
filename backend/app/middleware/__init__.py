"""
DLE Backend - Middleware Package
==================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (request direction):
    Request → [Request ID] → [Rate Limit] → [Logging] → [GZip] → [CORS] → Route Handler

    The request ID is set before anything else, so both a 429 body and
    every access log line carry it.
"""
