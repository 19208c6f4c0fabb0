from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from fleettrack.schemas.common import PageParams, SortOrder

DriverStatus = Literal["available", "on-delivery", "off-duty", "suspended"]
DRIVER_STATUSES = ("available", "on-delivery", "off-duty", "suspended")


class DriverCreate(BaseModel):
    name: str = Field(min_length=1)
    license: str = Field(min_length=1, max_length=64)
    phone: str = Field(min_length=1)
    email: EmailStr
    status: DriverStatus = "available"
    current_vehicle: Optional[str] = None
    rating: float = Field(0, ge=0, le=5)
    total_deliveries: int = Field(0, ge=0)
    on_time_deliveries: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _check_invariants(self):
        if self.current_vehicle is not None and self.status != "on-delivery":
            raise ValueError("current_vehicle can only be set on drivers that are on delivery")
        if self.on_time_deliveries > self.total_deliveries:
            raise ValueError("on_time_deliveries cannot exceed total_deliveries")
        return self


class DriverUpdate(BaseModel):
    license: Optional[str] = Field(None, min_length=1, max_length=64)
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    status: Optional[DriverStatus] = None


class VehicleAssignment(BaseModel):
    vehicle_id: str


class RatingChange(BaseModel):
    rating: float


class DeliveryRecord(BaseModel):
    on_time: bool


class DriverFilters(PageParams):
    status: Optional[DriverStatus] = None
    search: Optional[str] = None
    sort_by: Literal["rating", "name", "total_deliveries", "created_at"] = "rating"
    sort_order: SortOrder = "desc"


class Pairing(BaseModel):
    driver_id: str
    vehicle_id: str
