# Routes package init
"""
ytclipper Backend — API Routes Package
========================================

Route Inventory:
    - auth.py:        POST /api/v1/auth/register, /login, /refresh, /logout
                      POST /api/v1/auth/forgot-password, /reset-password, /verify-email
                      POST /api/v1/auth/add-password
                      GET  /api/v1/auth/me, /token, /status
                      GET  /api/v1/auth/google/login, /google/callback
    - timestamps.py:  POST   /api/v1/timestamps
                      GET    /api/v1/timestamps/{video_id}
                      DELETE /api/v1/timestamps/{timestamp_id}
    - health.py:      GET  /health
    - deps.py:        service wiring and RequireAuth

Design Principle:
    Routes are THIN: bind the request, call a service, shape the response
    (status code, cookies, headers). Account rules live in services.
"""
