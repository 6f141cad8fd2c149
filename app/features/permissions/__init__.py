"""
Permission management feature module.

Implements Role-Based Access Control (RBAC) with per-role data scopes
resolved against the organization tree.
"""
