"""ORM Base — declarative base shared by every model.

Engine and session handling live in infrastructure/database.py; this package only
defines table metadata.
"""
