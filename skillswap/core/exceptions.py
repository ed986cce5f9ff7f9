from fastapi import HTTPException, status

class NotFoundError(HTTPException):
    """
    Raised when a record does not exist or does not belong to the caller.

    Both cases share this error so that callers cannot discover other
    users' records.
    """
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class BadRequestError(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class ConflictError(HTTPException):
    """Duplicate pending swap request or duplicate rating."""
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class CredentialsError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class DuplicateRecordError(Exception):
    """Raised by the data layer when the store rejects a row on a unique index."""
    def __init__(self, table: str, message: str = ""):
        self.table = table
        self.message = message
        super().__init__(f"Duplicate record in {table}: {message}")
