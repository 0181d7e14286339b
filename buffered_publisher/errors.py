class InvalidClientError(TypeError):
    """Raised when the broker client given to a publisher cannot report readiness."""

    def __init__(self, message="First argument must be a valid broker client"):
        super().__init__(message)
