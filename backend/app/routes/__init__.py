# Routes package init
"""
Prompt & Pause Backend — API Routes Package
============================================

Route Inventory:
    - health.py:       GET /health
    - reflections.py:  /api/reflections         (journal CRUD + stats)
    - prompts.py:      /api/prompts             (today's prompt, generate)
    - premium.py:      /api/premium             (mood analytics, weekly digest)
    - user.py:         /api/user/preferences, /api/support/contact
    - cron.py:         /api/cron/{job}          (scheduler entry points)
    - admin.py:        /api/admin/...           (back office)

Routes stay thin: resolve the caller, call a service, shape the response.
"""
