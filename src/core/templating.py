"""Jinja2 template environment and helpers for the HTML pages."""
from datetime import date, datetime
from pathlib import Path

from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "api" / "templates"
STATIC_DIR = Path(__file__).resolve().parent.parent / "api" / "static"


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def includes(collection: object, value: object) -> bool:
    """
    Check whether ``value`` is a member of ``collection`` by integer identity.

    Used to pre-check checkboxes: ``collection`` holds the selected ids (ints
    or form strings) and ``value`` is the id of the option being rendered.
    Anything that is not a list, tuple or set never contains anything.
    """
    if not isinstance(collection, (list, tuple, set, frozenset)):
        return False
    target = _as_int(value)
    if target is None:
        return False
    return any(_as_int(item) == target for item in collection)


def display_date(value: date | datetime | None) -> str:
    """Format a date for display as dd/mm/yyyy."""
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def input_date(value: date | datetime | None) -> str:
    """Format a date for an <input type="date"> value (YYYY-MM-DD)."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals["includes"] = includes
templates.env.filters["display_date"] = display_date
templates.env.filters["input_date"] = input_date
