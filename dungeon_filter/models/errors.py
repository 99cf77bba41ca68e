"""
Error types shared by the engine and the glue around it.
Every error carries a machine-readable code so adapters can render it.
"""


class DungeonFilterError(Exception):
    """Base exception for filter errors"""
    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to JSON-serializable dict"""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class InvalidThreshold(DungeonFilterError):
    """Threshold is not an integer in [0, 255]"""
    def __init__(self, value):
        super().__init__(
            message=f"Threshold must be an integer in [0, 255], got {value!r}",
            error_code="INVALID_THRESHOLD",
            details={"value": repr(value), "min": 0, "max": 255}
        )


class MalformedBuffer(DungeonFilterError):
    """Pixel buffer is not made of complete RGBA pixels or does not match its size"""
    def __init__(self, reason, length=None, width=None, height=None):
        super().__init__(
            message=f"Malformed pixel buffer: {reason}",
            error_code="MALFORMED_BUFFER",
            details={"length": length, "width": width, "height": height}
        )


class NoImageLoaded(DungeonFilterError):
    """An operation needed the current image but none is loaded"""
    def __init__(self, operation=None):
        super().__init__(
            message="No image loaded",
            error_code="NO_IMAGE_LOADED",
            details={"operation": operation}
        )


class UnsupportedImage(DungeonFilterError):
    """Upload or file could not be decoded as an image"""
    def __init__(self, source, reason=None):
        super().__init__(
            message="Please upload a valid image file",
            error_code="UNSUPPORTED_IMAGE",
            details={"source": str(source), "reason": reason}
        )
