class BookingError(Exception):
    pass


class InvalidDate(BookingError):
    pass


class InvalidSlot(BookingError):
    pass


class ResourceNotFound(BookingError):
    pass


class BookingNotFound(BookingError):
    pass


class SlotAlreadyBooked(BookingError):
    pass


class Forbidden(BookingError):
    pass


class StorageUnavailable(BookingError):
    """The booking store could not be reached or failed mid-operation.

    Never retried here; the caller decides.
    """
