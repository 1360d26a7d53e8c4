"""
Users feature: CRUD over the `users` table through `core.records`.
"""
