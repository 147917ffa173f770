"""
Accounting Office Platform.

- backend/: REST API, database models, services and configuration
"""
