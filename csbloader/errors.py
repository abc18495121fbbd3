# Credits: Nightfire Research Team - 2024


class CsbError(RuntimeError):
    pass


class CsbDecodeError(CsbError):
    """Raised when a CSB file can't be decoded any further."""

    def __init__(self, message: str, offset: int | None = None):
        if offset is not None:
            message = f"{message} (at offset 0x{offset:x})"
        super().__init__(message)
        self.offset = offset


class CsbMarkerNotFoundError(CsbDecodeError):
    pass


class CsbTruncatedError(CsbDecodeError):
    pass


class CsbVersionError(CsbDecodeError):
    pass


class CsbEncodeError(CsbError):
    """Raised when a CollisionBinary breaks an invariant the format relies on."""
    pass


class CsbLabelError(CsbError, ValueError):
    pass


class InvalidFileError(CsbError):
    """Raised when a Wavefront obj file can't be turned into a CollisionBinary."""

    def __init__(self, message: str, line_number: int | None = None, line: str | None = None):
        if line_number is not None:
            message = f"line {line_number}: {message}"
            if line is not None:
                message += f" ({line.strip()!r})"
        super().__init__(message)
        self.line_number = line_number
        self.line = line
