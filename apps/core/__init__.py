# apps/core/__init__.py

"""
Core - base application of Tandem Board

Contains:
- Models (Board, TaskList, Task, members, assignees, comments, activity)
- Board permissions and the JSON view decorator
- Bearer token authentication
- Typed errors
- seed and verify_positions commands
"""
