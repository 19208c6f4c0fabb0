from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from fleettrack.schemas.common import PageParams, SortOrder

ShipmentStatus = Literal["pending", "in-transit", "delivered", "delayed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]
SHIPMENT_STATUSES = ("pending", "in-transit", "delivered", "delayed", "cancelled")


class Customer(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)


class DriverSnapshot(BaseModel):
    # copied at assignment time; not kept in sync with the driver record
    id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    vehicle: Optional[str] = None


class Route(BaseModel):
    distance: float = Field(ge=0)
    estimated_time: float = Field(ge=0)


class ShipmentCreate(BaseModel):
    tracking_number: str = Field(min_length=1, max_length=64)
    origin: str = Field(min_length=1)
    destination: str = Field(min_length=1)
    status: ShipmentStatus = "pending"
    priority: Priority = "medium"
    weight: float = Field(gt=0)
    customer: Customer
    driver: Optional[DriverSnapshot] = None
    estimated_delivery: datetime
    actual_delivery: Optional[datetime] = None
    route: Route
    notes: List[str] = []

    @model_validator(mode="after")
    def _actual_delivery_only_when_delivered(self):
        if self.actual_delivery is not None and self.status != "delivered":
            raise ValueError("actual_delivery can only be set on delivered shipments")
        return self


class ShipmentUpdate(BaseModel):
    tracking_number: Optional[str] = Field(None, min_length=1, max_length=64)
    origin: Optional[str] = None
    destination: Optional[str] = None
    status: Optional[ShipmentStatus] = None
    priority: Optional[Priority] = None
    weight: Optional[float] = Field(None, gt=0)
    customer: Optional[Customer] = None
    driver: Optional[DriverSnapshot] = None
    estimated_delivery: Optional[datetime] = None
    route: Optional[Route] = None
    notes: Optional[List[str]] = None


class StatusChange(BaseModel):
    status: ShipmentStatus
    notes: Optional[str] = None


class DeliveryConfirmation(BaseModel):
    actual_delivery_date: Optional[datetime] = None


class ShipmentFilters(PageParams):
    status: Optional[ShipmentStatus] = None
    priority: Optional[Priority] = None
    search: Optional[str] = None
    sort_by: Literal["created_at", "updated_at", "estimated_delivery", "tracking_number", "priority", "status", "weight"] = "created_at"
    sort_order: SortOrder = "desc"
