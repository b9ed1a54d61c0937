"""Game record services: the win rule and scoring, per-player statistics, search.

Routes and socket handlers call into here; nothing in this package touches
the request or renders JSON.
"""
