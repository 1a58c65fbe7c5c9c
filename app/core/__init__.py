"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (cleanups, notifications,
payments). Nothing here knows about holds, payouts or requests.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - MetadataMixin: Opaque JSON metadata

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError and its ValidationError, NotFoundError,
      PermissionDeniedError, ConflictError, ExternalServiceError subclasses

Views (import from core.views):
    - health_check: Liveness/readiness endpoint
"""
