import re
import unicodedata
from typing import Optional
from uuid import uuid4


def slugify(value: Optional[str]) -> str:
    """Lowercase ASCII slug with runs of other characters collapsed to '-'."""
    text = " ".join(str(value or "").split()).lower()
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text).strip("-")
    if not slug:
        slug = uuid4().hex[:12]
    return slug
