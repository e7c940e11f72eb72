"""API Layer — FastAPI routers, dependencies and global error handlers.

Invariants:
    - Routers are registered explicitly in main.py
    - Handlers delegate to services; no scheduling or execution logic lives here
"""
