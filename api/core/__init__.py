"""
Shared, cross-cutting code for the API.

`core/` holds the small building blocks every feature uses: the store handles,
the typed record access layer and the store lifecycle. Keep feature-specific
SQL and business logic in the corresponding feature package (e.g. `items/`).
"""
