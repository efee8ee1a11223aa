class ServiceError(ValueError):
    """Base class for failures a caller can act on."""


class NotFoundError(ServiceError):
    """The resource does not exist or is not visible to the owner."""


class InvalidRequestError(ServiceError):
    """An explicit parameter is out of range and has no default to fall back on."""


class ForbiddenError(ServiceError):
    """The owner may not perform this operation on the resource."""


class ConflictError(ServiceError):
    """A unique key is already taken."""
