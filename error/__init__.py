
class ServerError(Exception):
    """Base class for server-related errors"""

    def __init__(self, msg="Server error occurred", status_code=500):
        self.msg = msg
        self.status_code = status_code
        super().__init__(self.msg)


class InvalidRequestError(ServerError):
    """Raised when request is invalid"""

    def __init__(self, msg="Invalid request", status_code=400):
        super().__init__(msg=msg, status_code=status_code)


class AuthorizationError(ServerError):
    """Raised when user is not authorized"""

    def __init__(self, msg="Not authorized", status_code=403):
        super().__init__(msg=msg, status_code=status_code)


class ResourceNotFoundError(ServerError):
    """Raised when requested resource is not found"""

    def __init__(self, msg="Resource not found", status_code=404):
        super().__init__(msg=msg, status_code=status_code)


class AIGenerationError(ServerError):
    """Raised when the language model fails or returns unusable output"""

    def __init__(self, msg="Plan generation failed, please try again", status_code=502):
        super().__init__(msg=msg, status_code=status_code)
