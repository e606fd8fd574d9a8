"""
Core Application - shared infrastructure for the marketplace apps.

Models (core.models):
    - BaseModel: abstract model with created_at/updated_at

Model Mixins (core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID primary key
    - VersionedMixin: optimistic-locking version counter

Services (core.services):
    - BaseService: logger and transaction helpers
    - ServiceResult: success/failure wrapper

Exceptions (core.exceptions):
    - BaseApplicationError and its HTTP-mapped subclasses

Rate limiting (core.rate_limit):
    - SharedRateLimiter: cache-backed fixed-window limiter

Views (core.views):
    - health_check: database and cache probe
"""
