class StoreError(Exception):
    """Raised when the record store fails to read, write or truncate."""
