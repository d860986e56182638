"""Fees schemas: catalog, overrides, scholarships."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from app.core.enums import BoardingStatus, DiscountType
from app.core.schemas import CamelModel


# --- Fee Structure ---
class FeeStructureCreate(CamelModel):
    class_level: str = Field(..., min_length=1, max_length=50)
    fee_type: str = Field(..., min_length=1, max_length=100)
    amount: int = Field(..., ge=0)
    term: Optional[int] = Field(None, ge=1, le=3, description="Null applies to every term of the year")
    year: int = Field(..., ge=2020, le=2100)
    boarding_status: BoardingStatus = BoardingStatus.ALL
    description: Optional[str] = None


class FeeStructureUpdate(CamelModel):
    amount: Optional[int] = Field(None, ge=0)
    boarding_status: Optional[BoardingStatus] = None
    description: Optional[str] = None


class FeeStructureResponse(CamelModel):
    id: int
    school_id: int
    class_level: str
    fee_type: str
    amount: int
    term: Optional[int] = None
    year: int
    boarding_status: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# --- Student Fee Override ---
class FeeOverrideUpsert(CamelModel):
    student_id: int
    fee_type: str = Field(..., min_length=1, max_length=100)
    custom_amount: int = Field(..., ge=0)
    term: Optional[int] = Field(None, ge=1, le=3)
    year: int = Field(..., ge=2020, le=2100)
    reason: Optional[str] = None


class FeeOverrideResponse(CamelModel):
    id: int
    student_id: int
    fee_type: str
    custom_amount: int
    term: Optional[int] = None
    year: int
    reason: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# --- Scholarship ---
class ScholarshipCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    discount_type: DiscountType
    discount_value: int = Field(..., ge=0)
    fee_types: List[str] = Field(default_factory=list, description="Empty applies to every fee type")
    description: Optional[str] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None

    @field_validator("fee_types")
    @classmethod
    def strip_fee_types(cls, v: List[str]) -> List[str]:
        return [t.strip() for t in v if t and t.strip()]

    @model_validator(mode="after")
    def check_discount(self):
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("valid_to must not be before valid_from")
        return self


class ScholarshipResponse(CamelModel):
    id: int
    name: str
    discount_type: str
    discount_value: int
    fee_types: List[str]
    description: Optional[str] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    is_active: bool
    created_at: datetime


class ScholarshipAssign(CamelModel):
    student_id: int
    scholarship_id: int
    term: Optional[int] = Field(None, ge=1, le=3)
    year: int = Field(..., ge=2020, le=2100)
    notes: Optional[str] = None


class StudentScholarshipResponse(CamelModel):
    id: int
    student_id: int
    scholarship_id: int
    scholarship_name: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[int] = None
    term: Optional[int] = None
    year: int
    status: str
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
