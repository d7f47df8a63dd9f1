# apps/board/__init__.py

"""
Board - live kanban of Tandem Board

Features:
- Dense ordering of tasks and lists, serialized per list
- Move coordinator
- WebSocket fan-out and presence
- Client-side reconciliation cache
- JSON API
"""
