from fastapi import HTTPException


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status_code=403, detail=detail)


class InvalidInputError(HTTPException):
    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=400, detail=detail)


class ConflictError(HTTPException):
    """Duplicate resource, e.g. enrolling twice in the same course"""

    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(status_code=400, detail=detail)


class BusyError(HTTPException):
    """Guarded update lost the race too many times; the client may retry"""

    def __init__(self, detail: str = "Resource is busy, please retry"):
        super().__init__(status_code=409, detail=detail)


class AssistantUnavailable(Exception):
    """Raised by the language model client; never sent to the client"""
    pass
