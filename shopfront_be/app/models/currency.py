from sqlalchemy import Column, Integer, String, Numeric, DateTime
from datetime import datetime
from app.models.user import Base


class Currency(Base):
    __tablename__ = "currencies"
    id = Column(Integer, primary_key=True, index=True)
    currency = Column(String(3), unique=True, nullable=False)  # ISO code, e.g. USD
    symbol = Column(String(10), nullable=False)
    value = Column(Numeric(12, 4), nullable=False)  # rate against the base currency
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
