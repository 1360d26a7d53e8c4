"""
Example feature: CRUD over the `items` table through `core.records`.
"""
