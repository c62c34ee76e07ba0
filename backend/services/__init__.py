"""
Background services that run alongside the HTTP handlers.
"""
