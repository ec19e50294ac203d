class UpdownError(Exception):
    pass


class ConfigError(UpdownError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"Configuration error: {self.message}"


class DataSourceUnavailableError(UpdownError):
    def __init__(self, message: str, source: str, location: str = "") -> None:
        self.message = message
        self.source = source
        self.location = location
        super().__init__(message)

    def __str__(self) -> str:
        location_info = f" at {self.location}" if self.location else ""
        return f"Data source {self.source}{location_info} unavailable: {self.message}"


class InvalidUserInputError(UpdownError):
    def __init__(self, field: str, value: object, reason: str = "") -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {value!r}")

    def __str__(self) -> str:
        reason_info = f" ({self.reason})" if self.reason else ""
        return f"Invalid value for {self.field}: {self.value!r}{reason_info}"


class StartupFailureError(UpdownError):
    """Fatal startup condition with an explicit process exit code."""

    def __init__(
        self,
        message: str,
        exit_code: int = 4,
        reason: str = "fatal_startup_error",
    ) -> None:
        self.message = message
        self.exit_code = exit_code
        self.reason = reason
        super().__init__(message)

    def __str__(self) -> str:
        return self.message
