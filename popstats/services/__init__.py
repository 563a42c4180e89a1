"""
POPSTATS - Services

- collectors/   Master server polling (fetch + merge)
- population/   Samples table: inserts, retention query, clear
- data/         CSV codec for export and bulk import
"""
