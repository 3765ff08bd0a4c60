"""
Purpose:
- Serve the single-page form UI.
"""

from pathlib import Path
from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"])

_INDEX = Path(__file__).resolve().parent.parent / "web" / "index.html"

@router.get("/", response_class=HTMLResponse)
def index():
    return HTMLResponse(_INDEX.read_text(encoding="utf-8"))
