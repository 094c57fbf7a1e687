"""Typed shapes of the fee-management API responses consumed by the engine."""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

T = TypeVar("T")


class ApiEnvelope(BaseModel, Generic[T]):
    """Single response envelope. Bare payloads are treated as ``{"data": payload}``."""

    data: T
    meta: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_payload(cls, value: Any) -> Any:
        if isinstance(value, dict) and "data" in value:
            return value
        return {"data": value}


class NamedRef(BaseModel):
    id: int
    name: Optional[str] = None


class FeeStructure(BaseModel):
    id: int
    name: str
    amount: Decimal
    fee_category_id: Optional[int] = Field(None, alias="feeCategoryId")
    class_id: Optional[int] = Field(None, alias="classId")
    category_head_id: Optional[int] = Field(None, alias="categoryHeadId")
    status: Optional[str] = None

    class Config:
        populate_by_name = True


class FeeCategory(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    applicable_months: Optional[List[int]] = Field(None, alias="applicableMonths")

    class Config:
        populate_by_name = True


class RoutePrice(BaseModel):
    id: int
    route_id: int = Field(..., alias="routeId")
    class_id: Optional[int] = Field(None, alias="classId")
    category_head_id: Optional[int] = Field(None, alias="categoryHeadId")
    amount: Decimal
    fee_category_id: Optional[int] = Field(None, alias="feeCategoryId")

    class Config:
        populate_by_name = True


class InvoiceItem(BaseModel):
    description: Optional[str] = None
    amount: Decimal = Decimal("0")
    source_type: Optional[str] = Field(None, alias="sourceType")
    source_id: Optional[int] = Field(None, alias="sourceId")

    class Config:
        populate_by_name = True


class Invoice(BaseModel):
    id: int
    student_id: Optional[int] = Field(None, alias="studentId")
    total_amount: Decimal = Field(Decimal("0"), alias="totalAmount")
    paid_amount: Decimal = Field(Decimal("0"), alias="paidAmount")
    items: List[InvoiceItem] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @field_validator("paid_amount", "total_amount", mode="before")
    @classmethod
    def _null_amount_is_zero(cls, value: Any) -> Any:
        return "0" if value is None else value

    @field_validator("items", mode="before")
    @classmethod
    def _null_items_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class Student(BaseModel):
    id: int
    school_id: Optional[int] = Field(None, alias="schoolId")
    academic_year_id: Optional[int] = Field(None, alias="academicYearId")
    class_id: Optional[int] = Field(None, alias="classId")
    category_head_id: Optional[int] = Field(None, alias="categoryHeadId")
    route_id: Optional[int] = Field(None, alias="routeId")
    opening_balance: Optional[Decimal] = Field(None, alias="openingBalance")
    school_class: Optional[NamedRef] = Field(None, alias="class")
    category_head: Optional[NamedRef] = Field(None, alias="categoryHead")
    route: Optional[NamedRef] = None

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _fill_ids_from_relations(self) -> "Student":
        # Relations may be loaded while the flat *_id columns are not, and vice versa.
        if self.class_id is None and self.school_class is not None:
            self.class_id = self.school_class.id
        if self.category_head_id is None and self.category_head is not None:
            self.category_head_id = self.category_head.id
        if self.route_id is None and self.route is not None:
            self.route_id = self.route.id
        return self

    @property
    def class_label(self) -> str:
        if self.school_class and self.school_class.name:
            return self.school_class.name
        return str(self.class_id)

    @property
    def category_label(self) -> str:
        if self.category_head and self.category_head.name:
            return self.category_head.name
        return str(self.category_head_id)


class AcademicYear(BaseModel):
    id: int
    name: Optional[str] = None
    start_date: date = Field(..., alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")

    class Config:
        populate_by_name = True

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _strip_time(cls, value: Any) -> Any:
        # The API serialises DATE columns as ISO timestamps.
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value
