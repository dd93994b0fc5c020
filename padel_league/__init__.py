"""
Padel league backend: round-robin scheduling, result submission and standings.
"""
