class ValidationError(ValueError):
    """Input rejected before any store access."""


class NotFoundError(ValueError):
    """A referenced template or category does not exist."""


class StoreError(RuntimeError):
    """The backing store failed; the original exception is chained."""
