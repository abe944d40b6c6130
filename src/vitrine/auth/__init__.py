"""Authentication — JWT tokens and an admin API key.

Only catalog writes are protected. Reads and the realtime socket are
public in development.
"""
