# Middleware package init
"""
Prompt & Pause Backend — Middleware Package
============================================

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit first: reject abusive clients before any work
       (health, docs and /api/cron are exempt)
    2. Request ID: correlation id for logs and error bodies
    3. Logging: one access line per request, with duration
"""
