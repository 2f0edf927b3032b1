"""Custom errors for curlcraft."""


class DescriptorError(ValueError):
    """A request or environment file is structurally invalid."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)
