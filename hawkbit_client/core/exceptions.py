class DDIError(Exception):
    """Base exception for Direct Device Integration client errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: dict | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        result = {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result


class UrlParseError(DDIError):
    def __init__(self, message: str = "Could not parse url.", details: dict | None = None):
        super().__init__(code="invalid_url", message=message, details=details)


class InvalidTokenError(DDIError):
    def __init__(self, message: str = "Invalid token format.", details: dict | None = None):
        super().__init__(code="invalid_token", message=message, details=details)


class TransportError(DDIError):
    def __init__(self, message: str = "Failed to process request.", details: dict | None = None):
        super().__init__(code="transport_error", message=message, details=details)

    @property
    def status_code(self) -> int | None:
        return self.details.get("status_code")


class InvalidResponseError(DDIError):
    def __init__(
        self,
        message: str = "Malformed response from server.",
        details: dict | None = None,
        code: str = "invalid_response",
    ):
        super().__init__(code=code, message=message, details=details)


class InvalidSleepError(InvalidResponseError):
    def __init__(self, sleep: str):
        super().__init__(
            message=f"Failed to parse polling sleep: {sleep!r}",
            details={"sleep": sleep},
            code="invalid_sleep",
        )


class MissingDownloadLinkError(InvalidResponseError):
    def __init__(self, filename: str):
        super().__init__(
            message=f"Missing content link for artifact {filename!r}",
            details={"filename": filename},
            code="missing_download_link",
        )


class DownloadIOError(DDIError):
    def __init__(self, message: str = "Failed to download update.", details: dict | None = None):
        super().__init__(code="download_io_error", message=message, details=details)


class ChecksumError(DDIError):
    """Digest of the downloaded content differs from the one declared by the server."""

    def __init__(self, algorithm, expected: str, actual: str):
        self.algorithm = algorithm
        super().__init__(
            code="checksum_mismatch",
            message=f"Failed to verify {algorithm.value} checksum",
            details={"algorithm": algorithm.value, "expected": expected, "actual": actual},
        )


class ChecksumDisabledError(DDIError):
    def __init__(self, algorithm):
        self.algorithm = algorithm
        super().__init__(
            code="checksum_disabled",
            message=f"{algorithm.value} checksum verification is not enabled.",
            details={"algorithm": algorithm.value},
        )
