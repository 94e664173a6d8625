from __future__ import annotations


class NotionGraphError(RuntimeError):
    pass


class ConfigError(NotionGraphError):
    """Credentials or database id missing. Not retried automatically."""


class NotionAPIError(NotionGraphError):
    def __init__(self, status_code: int, message: str):
        self.status_code = int(status_code)
        self.message = message
        if self.status_code:
            super().__init__(f"Notion API error ({self.status_code}): {message}")
        else:
            super().__init__(f"Could not reach the Notion API: {message}")


class NotionDecodeError(NotionGraphError):
    """Response body does not look like a Notion page/block listing."""


class CacheError(NotionGraphError):
    pass


class SyncError(NotionGraphError):
    """Single user-facing message for a failed sync."""
