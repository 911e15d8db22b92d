"""
HealthSphere portal client.

Role-gated session handling and appointment booking against the
HealthSphere REST backend.
"""
