"""
services/analytics.py
----------------------

Analytics metadata attached to outgoing requests.

The metadata describes the application and the device it runs on and
is serialised once as a compact JSON string.  Reporting can be switched
off at runtime, in which case no metadata header is sent.
"""

from __future__ import annotations

import json
import platform
import uuid
from typing import Any, Dict, Optional

from secure_session.core.config import Settings, get_settings


class DeviceAnalyticsMetadata:
    """Analytics metadata provider describing this app and host."""

    def __init__(self, app_name: str, app_version: str, *, enabled: bool = True,
                 device_id: Optional[str] = None) -> None:
        self.enabled = enabled
        self.metadata: Dict[str, Any] = {
            "deviceID": device_id or str(uuid.uuid4()),
            "os": platform.system().lower() or "unknown",
            "osVersion": platform.release(),
            "model": platform.machine(),
            "appName": app_name,
            "appVersion": app_version,
        }
        self._serialized = json.dumps(self.metadata, sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "DeviceAnalyticsMetadata":
        settings = settings or get_settings()
        return cls(settings.app_name, settings.app_version, **kwargs)

    def current_analytics_metadata(self) -> Optional[str]:
        if not self.enabled:
            return None
        return self._serialized
