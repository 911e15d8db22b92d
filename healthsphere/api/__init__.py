"""
Local stand-in for the HealthSphere backend.
"""
