"""
POPSTATS - CLI
"""
