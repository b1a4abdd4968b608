from pydantic import BaseModel, ConfigDict
from typing import Optional


class CurrencyCreate(BaseModel):
    currency: Optional[str] = None
    symbol: Optional[str] = None
    value: Optional[float] = None


class CurrencyUpdate(CurrencyCreate):
    pass


class CurrencyOut(BaseModel):
    id: Optional[int] = None
    currency: str
    symbol: str
    value: float

    model_config = ConfigDict(from_attributes=True)
