class ShippingError(Exception):
    """Base class for expected, user-facing failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(ShippingError):
    pass


class InvalidStateError(ShippingError):
    pass


class NotFoundError(ShippingError):
    pass


class ForbiddenError(ShippingError):
    pass


class ConcurrentModificationError(ShippingError):
    pass
