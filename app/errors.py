class FileShareError(Exception):
    """Base error; `status_code` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FileShareError):
    status_code = 400


class NotFoundError(FileShareError):
    status_code = 404


class GoneError(FileShareError):
    status_code = 410


class StorageError(FileShareError):
    """Filesystem failure. The message is shown to clients, the cause is only logged."""

    status_code = 500
