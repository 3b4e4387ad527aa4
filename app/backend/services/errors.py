# --- Service Layer Exception Classes ---

class ServiceError(Exception):
    """General exception class for the service layer."""
    pass

class NotFoundError(ServiceError):
    """A referenced record does not exist."""
    pass

class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message)

class CredentialNotFoundError(NotFoundError):
    def __init__(self, message: str = "Fingerprint not recognized"):
        super().__init__(message)

class DuplicateCredentialError(ServiceError):
    """The fingerprint template id is already enrolled to a user."""
    def __init__(self, message: str = "This fingerprint is already registered"):
        super().__init__(message)

class DuplicateEmailError(ServiceError):
    def __init__(self, message: str = "A user with this email already exists"):
        super().__init__(message)
