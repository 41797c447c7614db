"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps. Nothing here
knows about conversations or messages.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Managers (import from core.managers):
    - SoftDeleteManager: Filter deleted records by default
    - SoftDeleteQuerySet: QuerySet with soft delete operations

Services (import from core.services):
    - BaseService: Base class for service layer
    - store_errors: Translate database failures into StoreError

Exceptions (import from core.exceptions):
    - BaseApplicationError and its subclasses
    - api_exception_handler: DRF exception handler rendering the envelope

Helpers (import from core.helpers):
    - generate_token, parse_page_params, calculate_pagination

Views (import from core.views):
    - health_check: Infrastructure health endpoint
"""
