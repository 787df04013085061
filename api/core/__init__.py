"""
Shared, cross-cutting code for the app.

`core/` holds small building blocks that several features use (DB wiring,
settings, logging, the error taxonomy). Keep feature-specific SQL and business
logic in the corresponding feature package (e.g. `users/`).
"""
