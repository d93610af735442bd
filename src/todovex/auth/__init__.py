"""
Auth subsystem.

Components:
- convert.py: framework <-> storage document conversions
- adapter.py: StoreAuthAdapter, the auth-framework contract over the identity store
"""
