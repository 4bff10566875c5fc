"""Domain error types.

Each error carries the HTTP status and client-facing message it maps to;
``files_manager.main`` installs a single handler that renders them as
``{"error": message}``.
"""


class FilesManagerError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(FilesManagerError):
    """Missing, invalid or expired token, or bad credentials.

    The message never says which of those it was.
    """

    status_code = 401
    default_message = "Unauthorized"

    def __init__(self):
        super().__init__()


class ValidationError(FilesManagerError):
    """A required field is missing or has an unsupported value."""

    status_code = 400
    default_message = "Invalid request"


class MissingContent(ValidationError):
    """A file or image upload arrived without data."""

    default_message = "Missing data"


class ParentConflict(FilesManagerError):
    """The requested parent cannot hold children."""

    status_code = 400
    default_message = "Parent conflict"


class ParentNotFound(ParentConflict):
    default_message = "Parent not found"


class ParentNotAFolder(ParentConflict):
    default_message = "Parent is not a folder"


class NotFound(FilesManagerError):
    """Record absent, owned by someone else, or bytes missing on disk."""

    status_code = 404
    default_message = "Not found"

    def __init__(self):
        super().__init__()


class NotAContent(FilesManagerError):
    status_code = 400
    default_message = "A folder doesn't have content"


class InvalidRequest(FilesManagerError):
    """A thumbnail size was requested for a record that is not an image."""

    status_code = 400
    default_message = "Size is only available for images"


class InvalidSize(InvalidRequest):
    default_message = "Invalid size"


class StorageError(FilesManagerError):
    """Filesystem or backing-store failure. Fatal to the current operation."""

    status_code = 500
    default_message = "Server error"


class JobFailure(Exception):
    """Terminal failure of a thumbnail job. Never reaches an HTTP caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
