"""Custom exceptions for the ShopSmart application."""

class ShopError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(ShopError):
    """Exception raised for validation and business rule violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(ShopError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class ConflictError(ShopError):
    """Raised when a resource already exists (e.g. duplicate email)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)

class AuthenticationError(ShopError):
    """Raised when a request carries no usable credentials."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)

class UnauthorizedError(ShopError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)

class ImageUploadError(BusinessLogicError):
    """Raised when an uploaded image is rejected or cannot be stored."""
    def __init__(self, error, message, status_code=400):
        super().__init__(message, status_code, payload={'error': error})
