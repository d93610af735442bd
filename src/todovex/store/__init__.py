"""
Storage.

Components:
- identity_store.py: SQLite users/sessions/accounts/authenticators/verification tokens
- rpc.py: named-function clients for the identity store (remote HTTP or local)
- task_store.py: SQLite projects/labels/todos/sub-todos with vector search
"""
