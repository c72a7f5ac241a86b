"""Health probe resources for liveness, readiness and status checks.

Usage
-----
Import health resources for route registration::

    from issuegate.api.health.resources import HealthResource, ReadyResource
"""
