"""Domain Value Objects"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, ValidationInfo
from datetime import date


class DateRange(BaseModel):
    """Half-open stay range: check_in is included, check_out is not"""
    model_config = ConfigDict(frozen=True)

    check_in: date
    check_out: date

    @field_validator('check_out')
    @classmethod
    def check_out_after_check_in(cls, v: date, info: ValidationInfo) -> date:
        check_in = info.data.get('check_in')
        if check_in is not None and v <= check_in:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, check_in: date, check_out: date) -> bool:
        """Half-open overlap; back-to-back ranges do not overlap"""
        return self.check_in < check_out and self.check_out > check_in


class GuestCount(BaseModel):
    """Value Object for party size"""
    model_config = ConfigDict(frozen=True)

    adults: int = Field(ge=1, le=10)
    children: int = Field(ge=0, le=10, default=0)

    @property
    def total(self) -> int:
        return self.adults + self.children
