from pydantic import BaseModel
from typing import Any, List, Optional


class MegaMenuCreate(BaseModel):
    collection_id: Optional[int] = None
    parent_menu_item_id: Optional[int] = None
    position: Optional[int] = None
    is_active: Optional[bool] = True
    is_featured: Optional[bool] = False
    display_subcollections: Optional[bool] = False


class MegaMenuUpdate(BaseModel):
    position: Optional[int] = None
    is_active: Optional[bool] = None
    parent_menu_item_id: Optional[int] = None
    display_subcollections: Optional[bool] = None


class ReorderItem(BaseModel):
    id: int
    position: int


class ReorderIn(BaseModel):
    # entries are validated against ReorderItem in the router so bad input is a 400
    items: List[Any] = []
