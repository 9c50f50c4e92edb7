"""
Building blocks shared by every feature package.

Settings, the asyncpg pool, error envelopes, rate limiting and the Supabase
client live here. Feature SQL and business rules stay in their own package
(e.g. `progress/`, `subscriptions/`).
"""
