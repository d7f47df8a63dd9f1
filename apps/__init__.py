# apps/__init__.py

"""
Tandem Board - Django applications

- core: models, authentication, permissions, admin and operator commands
- board: ordering engine, move coordinator, JSON API and WebSockets
"""

__version__ = '0.1.0'
