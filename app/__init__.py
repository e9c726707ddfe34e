"""
Key Router web application: SQLAlchemy key store and FastAPI routes.
"""
