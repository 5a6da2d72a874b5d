"""
Qanoon AI - UAE Legal Research Assistant
========================================

Backend for the legal-research dashboard: role-gated navigation, credit and
quota accounting, conversation management, administrative functions and
payment checkout glue.

Shared infrastructure (database, auth, middleware) lives beside server.py;
everything product specific lives in this package.
"""

__version__ = "1.0.0"
__product__ = "Qanoon AI"
