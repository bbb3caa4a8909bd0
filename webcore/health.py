"""Health check payload."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class HealthCheck:
    app_name: str
    message: str = ""
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; empty message and version are left out."""
        data: dict[str, Any] = {"app_name": self.app_name}
        if self.message:
            data["message"] = self.message
        if self.version:
            data["version"] = self.version
        return data