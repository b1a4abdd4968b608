from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.models.user import User, get_db
from app.models.currency import Currency
from app.schemas.currency import CurrencyCreate, CurrencyOut, CurrencyUpdate
from app.utils.security import require_admin

router = APIRouter()

DEFAULT_CURRENCIES = [
    {"currency": "USD", "symbol": "$", "value": 1.0},
    {"currency": "EUR", "symbol": "€", "value": 0.92},
    {"currency": "GBP", "symbol": "£", "value": 0.81},
]


# 1. List Currencies
@router.get("/")
def list_currencies(db: Session = Depends(get_db)):
    rows = db.query(Currency).order_by(Currency.id).all()
    if not rows:
        return [CurrencyOut(**c) for c in DEFAULT_CURRENCIES]
    return [CurrencyOut.model_validate(c) for c in rows]


# 2. Create Currency (Admin)
@router.post("/", status_code=201)
def create_currency(payload: CurrencyCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if not payload.currency or not payload.symbol or payload.value is None:
        raise HTTPException(status_code=400, detail="currency, symbol and value are required")
    code = payload.currency.strip().upper()
    if db.query(Currency).filter(Currency.currency == code).first():
        raise HTTPException(status_code=409, detail="Currency already exists")
    currency = Currency(currency=code, symbol=payload.symbol, value=payload.value)
    db.add(currency)
    db.commit()
    db.refresh(currency)
    return CurrencyOut.model_validate(currency)


# 3. Update Currency (Admin)
@router.put("/{id}")
def update_currency(
    id: int, payload: CurrencyUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
):
    currency = db.query(Currency).filter(Currency.id == id).first()
    if not currency:
        raise HTTPException(status_code=404, detail="Currency not found")
    fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "currency" in fields:
        fields["currency"] = fields["currency"].strip().upper()
        clash = db.query(Currency).filter(Currency.currency == fields["currency"], Currency.id != id).first()
        if clash:
            raise HTTPException(status_code=409, detail="Currency already exists")
    for key, value in fields.items():
        setattr(currency, key, value)
    db.commit()
    db.refresh(currency)
    return CurrencyOut.model_validate(currency)


# 4. Delete Currency (Admin)
@router.delete("/{id}")
def delete_currency(id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    currency = db.query(Currency).filter(Currency.id == id).first()
    if not currency:
        raise HTTPException(status_code=404, detail="Currency not found")
    db.delete(currency)
    db.commit()
    return {"message": "Currency deleted successfully"}
