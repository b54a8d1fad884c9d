from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Status = Literal["active", "inactive", "error"]


class TelemetryIn(BaseModel):
    deviceId: str
    nodeId: str
    current: float
    voltage: float
    powerFactor: float  # documented 0-3, not enforced
    apparentPower: float
    # producer-defined mesh diagnostics, passed through untouched
    diagnostics: Dict[str, Any] = Field(default_factory=dict)


class TelemetryDoc(TelemetryIn):
    timestamp: datetime


class DeviceIn(BaseModel):
    # stored ids must equal the stripped ids the normalizer looks up
    model_config = ConfigDict(str_strip_whitespace=True)

    deviceId: str = Field(min_length=1)
    deviceName: str = Field(min_length=1)
    description: str = ""
    ipAddress: str = ""
    location: str = ""


class DeviceUpdate(BaseModel):
    deviceName: Optional[str] = None
    description: Optional[str] = None
    ipAddress: Optional[str] = None
    location: Optional[str] = None


class NodeIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    nodeId: str = Field(min_length=1)
    nodeName: str = Field(min_length=1)
    deviceId: str = Field(min_length=1)
    description: str = ""
    location: str = ""


class NodeUpdate(BaseModel):
    nodeName: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None


class StatusUpdate(BaseModel):
    status: Status
