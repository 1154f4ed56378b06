"""Shared (non-domain) exceptions raised by routing collaborators."""


class ToolError(Exception):
    """A routing tool call failed."""

    def __init__(self, tool: str, message: str):
        self.tool = tool
        super().__init__(f"[{tool}] {message}")


class ExternalServiceError(ToolError):
    """Provider answered with an error payload (quota, bad coordinates, no route)."""

    def __init__(self, tool: str, message: str, *, code: str | int = "UNKNOWN"):
        self.code = code
        super().__init__(tool, f"{message} (code={code})")


class KeyMissingError(Exception):
    """Required provider key is missing."""

    def __init__(self, name: str):
        self.key_name = name
        super().__init__(f"Missing required API key: {name} (configure it in .env)")
