"""Amenity domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .policy import WEEKDAYS


class OperatingHours(BaseModel):
    open: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    close: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    open24Hours: bool = False


class AmenityPolicyUpdate(BaseModel):
    """Schema for an admin's amenity policy edit; omitted fields keep their value"""

    janitorialRequired: Optional[bool] = None
    approvalRequired: Optional[bool] = None
    cancellationFeeEnabled: Optional[bool] = None
    modificationFeeEnabled: Optional[bool] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    reservationFee: Optional[float] = Field(default=None, ge=0)
    deposit: Optional[float] = Field(default=None, ge=0)
    daysOfOperation: Optional[list[str]] = None
    hoursOfOperation: Optional[OperatingHours] = None
    isActive: Optional[bool] = None

    @field_validator("daysOfOperation")
    @classmethod
    def validate_days(cls, v):
        if v is None:
            return v
        days = [d.strip().lower() for d in v]
        unknown = [d for d in days if d not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        return days

    @field_validator("hoursOfOperation")
    @classmethod
    def validate_hours(cls, v):
        if v is not None and not v.open24Hours and (not v.open or not v.close):
            raise ValueError("Opening and closing times are required unless open 24 hours")
        return v


class AmenityResponse(BaseModel):
    """Schema for amenity response"""

    id: int
    communityId: int
    name: str
    description: Optional[str] = None
    capacity: int
    reservationFee: float
    deposit: float
    daysOfOperation: Optional[list[str]] = None
    hoursOfOperation: Optional[dict] = None
    janitorialRequired: bool
    approvalRequired: bool
    cancellationFeeEnabled: bool
    modificationFeeEnabled: bool
    isActive: bool

    class Config:
        from_attributes = True


class PolicyChangeResponse(BaseModel):
    message: str
    amenity: AmenityResponse
    autoApprovedCount: int
    unconfirmedCount: int
    autoApprovedReservationIds: list[int]
    unconfirmedReservationIds: list[int]
