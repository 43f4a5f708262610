"""
DLE Backend - API Routes Package
==================================

What:  HTTP route handlers. Each module owns one resource.

Route Inventory:
    - people.py:    /api/people, /api/people/{id}
    - tags.py:      /api/tags, /api/tags/{id}
    - notes.py:     /api/notes, /api/notes/{id}, /api/notes/{id}/photos,
                    /api/photo/{key}, /api/photos/{id}
    - search.py:    /api/search, /api/categories
    - habits.py:    /api/default-habits, /api/people/{id}/habits...,
                    /api/habits/{id}..., /api/family-habits-summary
    - events.py:    /api/events, /api/event-data, /api/telegram-debug,
                    /api/audio/{key}
    - telegram.py:  /api/telegram-webhook
    - health.py:    /health

Routes stay thin: parse the request, call a service, shape the response.
"""
