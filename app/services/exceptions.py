# app/services/exceptions.py

class ServiceError(Exception):
    """Base class for service layer errors."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class DomainValidationError(ServiceError):
    """Invalid domain input."""
    pass


class InvalidQuantityError(DomainValidationError):
    """Raised when a line item quantity is not a positive integer."""
    pass


class ResourceNotFoundError(ServiceError):
    """Resource not found."""
    pass


class CartNotFoundError(ResourceNotFoundError):
    def __init__(self, cart_id: int):
        self.cart_id = cart_id
        super().__init__(f"Cart {cart_id} not found")


class OperationCancelledError(ServiceError):
    """The caller gave up on the operation before it finished."""
    pass


class DeadlineExceededError(OperationCancelledError):
    """The caller's deadline passed before the operation finished."""
    pass


class TransactionStateError(ServiceError):
    """A transaction handle was used after it finished, or written to while read-only."""
    pass


class StorageError(ServiceError):
    """A storage call failed; ``phase`` tells where in the sequence it happened."""

    def __init__(self, phase: str, detail: str):
        self.phase = phase
        super().__init__(f"{phase}: {detail}")
