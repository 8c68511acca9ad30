"""
Core app providing shared base classes and infrastructure.

Modules:
    models: BaseModel with timestamps
    model_mixins: UUIDPrimaryKeyMixin
    exceptions: Application error hierarchy and DRF exception handler
    services: BaseService (logger, transaction helper)
    protocols: TaskQueue
    views: Health check endpoint

Import from the submodules directly, e.g.
``from core.exceptions import NotFoundError``. Models are not re-exported
here because this package is imported before the app registry is ready.
"""
