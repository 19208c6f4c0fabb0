from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from fleettrack.schemas.common import PageParams

VehicleType = Literal["truck", "van", "trailer", "pickup"]
VehicleStatus = Literal["available", "in-use", "maintenance", "offline"]
VEHICLE_TYPES = ("truck", "van", "trailer", "pickup")
VEHICLE_STATUSES = ("available", "in-use", "maintenance", "offline")


class VehicleCreate(BaseModel):
    plate: str = Field(min_length=2, max_length=32)
    type: VehicleType
    capacity: float = Field(gt=0)
    status: VehicleStatus = "available"
    driver: Optional[str] = None
    last_maintenance: datetime
    next_maintenance: datetime

    @model_validator(mode="after")
    def _driver_only_when_in_use(self):
        if self.driver is not None and self.status != "in-use":
            raise ValueError("driver can only be set on in-use vehicles")
        return self


class VehicleUpdate(BaseModel):
    plate: Optional[str] = Field(None, min_length=2, max_length=32)
    type: Optional[VehicleType] = None
    capacity: Optional[float] = Field(None, gt=0)
    status: Optional[VehicleStatus] = None
    last_maintenance: Optional[datetime] = None
    next_maintenance: Optional[datetime] = None


class DriverAssignment(BaseModel):
    driver_id: str


class VehicleFilters(PageParams):
    status: Optional[VehicleStatus] = None
    type: Optional[VehicleType] = None
