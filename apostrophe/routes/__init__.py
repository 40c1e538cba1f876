# Routes package init
"""
Apostrophe Backend — API Routes Package
=========================================

Route Inventory:
    - ai.py:      POST /api/ai/{generate,ask,transform}      (provider fallback)
                  POST /api/ai/{cover-image,transcribe,embeddings,
                                summarize,classify,sentiment} (Hugging Face)
                  GET  /api/ai/providers
                  PUT  /api/ai/credentials/{provider}
    - notes.py:   GET  /api/notes, GET/PUT/DELETE /api/notes/{id}
                  PUT  /api/notes/{id}/icon, /api/notes/{id}/background
                  POST /api/notes/{id}/favorite, /api/notes/{id}/images
                  GET  /api/files/{path}, GET /api/backgrounds
    - health.py:  GET  /health

Design Principle:
    Routes are THIN: extract request data, call a service, shape the
    response. Business logic belongs in services.
"""
