"""Google API error definitions for the GCP mock.

Every error raised by the store or a handler is an ``ApiError`` subclass.
The exception carries enough information to render both envelope flavors:
the Cloud Storage flavor (``code``, ``message``, ``errors[]``) and the
Cloud SQL Admin flavor, which additionally carries a canonical ``status``.
"""

# Canonical status names used by the Cloud SQL Admin flavor, keyed by HTTP code.
_STATUS_BY_HTTP = {
    400: "INVALID_ARGUMENT",
    404: "NOT_FOUND",
    405: "UNIMPLEMENTED",
    409: "ALREADY_EXISTS",
    500: "INTERNAL",
}


class ApiError(Exception):
    """A Google API error with HTTP status, reason, and canonical status.

    Attributes:
        message: Human-readable error description returned to the client.
        http_status: The HTTP status code to return.
        reason: The ``errors[].reason`` value (e.g. "notFound", "conflict").
        status: Canonical status string for the Cloud SQL flavor
            (e.g. "NOT_FOUND"). Derived from ``http_status`` when omitted.
    """

    def __init__(
        self,
        message: str,
        http_status: int = 400,
        reason: str = "invalid",
        status: str | None = None,
    ) -> None:
        """Initialize the API error.

        Args:
            message: Error description.
            http_status: HTTP status code (default 400).
            reason: Error reason for the ``errors`` list.
            status: Optional canonical status override.
        """
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.reason = reason
        self.status = status or _STATUS_BY_HTTP.get(http_status, "UNKNOWN")

    def reason_for(self, flavor: str) -> str:
        """Return the reason string to render for the given envelope flavor."""
        return self.reason


# -- Validation / parse ---------------------------------------------------------


class InvalidArgument(ApiError):
    """A request value failed validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, http_status=400, reason="invalid")


class RequiredField(ApiError):
    """A required request value was missing or empty."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, http_status=400, reason="required")


class ParseError(ApiError):
    """The request body could not be decoded as JSON."""

    def __init__(self, message: str = "Parse Error") -> None:
        super().__init__(message=message, http_status=400, reason="parseError")


class InvalidMultipart(ApiError):
    """A ``multipart/related`` upload body could not be decoded."""

    def __init__(self, message: str = "Invalid multipart request") -> None:
        super().__init__(message=message, http_status=400, reason="invalid")


# -- Not found --------------------------------------------------------------------


class NotFound(ApiError):
    """The addressed resource does not exist."""

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(message=message, http_status=404, reason="notFound")


class BucketNotFound(NotFound):
    """The specified bucket does not exist."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(f"Bucket {bucket} not found")
        self.bucket = bucket


class ObjectNotFound(NotFound):
    """The specified object does not exist."""

    def __init__(self, bucket: str = "", name: str = "") -> None:
        super().__init__(f"No such object: {bucket}/{name}")
        self.bucket = bucket
        self.name = name


class InstanceNotFound(NotFound):
    """The Cloud SQL instance does not exist."""

    def __init__(self, instance: str = "") -> None:
        super().__init__(f"The Cloud SQL instance does not exist: {instance}")


class DatabaseNotFound(NotFound):
    """The database does not exist on the instance."""

    def __init__(self, instance: str = "", database: str = "") -> None:
        super().__init__(f"Database {database} not found on instance {instance}")


class UserNotFound(NotFound):
    """The user does not exist on the instance."""

    def __init__(self, instance: str = "", name: str = "", host: str = "%") -> None:
        super().__init__(f"User {name}@{host} not found on instance {instance}")


class OperationNotFound(NotFound):
    """The operation does not exist."""

    def __init__(self, operation: str = "") -> None:
        super().__init__(f"Operation {operation} not found")


class RouteNotFound(NotFound):
    """No route matches the request path."""

    def __init__(self, path: str = "") -> None:
        super().__init__(f"No handler found for path: {path}")


# -- Conflicts ----------------------------------------------------------------------


class AlreadyExists(ApiError):
    """A resource with the same identity already exists."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            http_status=409,
            reason="conflict",
            status="ALREADY_EXISTS",
        )


class BucketAlreadyExists(AlreadyExists):
    """The requested bucket name is already in use."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            "Your previous request to create the named bucket succeeded "
            f"and you already own it: {bucket}"
        )


class BucketNotEmpty(ApiError):
    """The bucket still owns objects and cannot be deleted."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            message=f"The bucket you tried to delete is not empty: {bucket}",
            http_status=409,
            reason="conflict",
            status="FAILED_PRECONDITION",
        )


class DeletionProtected(ApiError):
    """The instance has deletion protection enabled."""

    def __init__(self, instance: str = "") -> None:
        super().__init__(
            message=f"The instance {instance} has deletion protection enabled",
            http_status=400,
            reason="failedPrecondition",
            status="FAILED_PRECONDITION",
        )


# -- Protocol / server ----------------------------------------------------------------


class MethodNotAllowed(ApiError):
    """The path exists but does not accept the request method."""

    def __init__(self, method: str = "", path: str = "") -> None:
        super().__init__(
            message=f"Method {method} not allowed for {path}",
            http_status=405,
            reason="methodNotAllowed",
        )


class InternalError(ApiError):
    """An unexpected server-side failure.

    The message is deliberately generic; the underlying cause is logged.
    """

    def __init__(self, message: str = "Internal error encountered.") -> None:
        super().__init__(message=message, http_status=500, reason="backendError")

    def reason_for(self, flavor: str) -> str:
        return "internalError" if flavor == "sql" else self.reason
