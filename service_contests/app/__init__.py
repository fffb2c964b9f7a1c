"""
Contest Service package for the Fantasy Contest Platform.

Serves match, contest, team and wallet data out of a relational store,
fronted by a two-tier cache.

Structure:
- app.main: FastAPI app, lifespan and routes.
- app.caching: Cache manager, tiers, codec and TTL policies.
- app.persistence: Store-query contract consumed by cache callbacks.
- app.services: Thin cache consumers (wallet, match, user activity).
"""
