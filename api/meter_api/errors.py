
from typing import Any, Dict, List, Optional


class MeterApiError(Exception):
    status_code = 500
    message = "Error processing request"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message}


class ValidationError(MeterApiError):
    """Missing or unparseable required telemetry field."""

    status_code = 400
    message = "Invalid meter data"

    def __init__(
        self,
        missing: Optional[List[str]] = None,
        invalid: Optional[List[str]] = None,
        message: Optional[str] = None,
    ) -> None:
        self.missing = list(missing or [])
        self.invalid = list(invalid or [])
        if message is None:
            parts = []
            if self.missing:
                parts.append("Missing required fields: " + ", ".join(self.missing))
            if self.invalid:
                parts.append("Invalid numeric fields: " + ", ".join(self.invalid))
            message = "; ".join(parts) or None
        super().__init__(message)

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.missing:
            body["missing"] = self.missing
        if self.invalid:
            body["invalid"] = self.invalid
        return body


class NotFoundError(MeterApiError):
    status_code = 404
    message = "Not found"


class DeviceNotFound(NotFoundError):
    message = "Device not found. Please register the device first."


class NodeNotFound(NotFoundError):
    message = "Node not found or does not belong to this device."


class ConflictError(MeterApiError):
    """Duplicate registration; reported as 400, which dashboard clients already expect."""

    status_code = 400
    message = "Already exists"


class PersistenceError(MeterApiError):
    status_code = 500
    message = "Error processing meter data"


class LivenessUpdateError(MeterApiError):
    # never rendered to a client; the record is already committed when this happens
    message = "Failed to update liveness timestamps"
