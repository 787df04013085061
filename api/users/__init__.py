"""
The `users` table: persistence, business rules and the JSON API.
"""
