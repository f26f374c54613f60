"""Client-side record types for the roster list."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Final

from photo_roster.models.enums import ResolutionMethod

logger = logging.getLogger(__name__)

NO_LOCATION: Final = "Sin ubicación especificada"

# Storage column → record attribute
PERSON_COLUMNS: Final[dict[str, str]] = {
    "nombre_completo": "full_name",
    "identificacion": "identification",
    "tipo_identificacion": "identification_type",
    "telefono": "phone",
    "email": "email",
    "direccion": "address",
    "activo": "active",
    "fec_nacimiento": "birth_date",
    "edad": "age",
    "foto_path": "image_path",
    "pais_id": "country_id",
    "departamento_id": "department_id",
    "ciudad_id": "city_id",
    "barrio_id": "neighborhood_id",
    "created_at": "created_at",
}


@dataclass(frozen=True)
class EntityRecord:
    """One row of the roster as the UI sees it.

    Frozen: a merged record only ever changes by being swapped for a copy
    (``dataclasses.replace``), which is how a fresher photo URL lands.
    """

    id: str
    full_name: str = ""
    identification: str = ""
    identification_type: str = ""
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    active: bool = True
    birth_date: date | None = None
    age: int | None = None
    image_path: str | None = None
    created_at: datetime | None = None

    # Location foreign keys and their resolved names
    country_id: int | None = None
    department_id: int | None = None
    city_id: int | None = None
    neighborhood_id: int | None = None
    country_name: str | None = None
    department_name: str | None = None
    city_name: str | None = None
    neighborhood_name: str | None = None

    # Filled by PhotoResolver before the record is merged
    resolved_photo_url: str | None = None
    resolution_method: ResolutionMethod = ResolutionMethod.NONE

    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def display_name(self) -> str:
        return self.full_name

    @property
    def location_label(self) -> str:
        """Known location names joined with commas, most general first."""
        parts = [
            name
            for name in (
                self.country_name,
                self.department_name,
                self.city_name,
                self.neighborhood_name,
            )
            if name
        ]
        return ", ".join(parts) or NO_LOCATION

    def matches(self, term: str) -> bool:
        """Case-insensitive search over the text fields shown in the list."""
        needle = term.strip().lower()
        if not needle:
            return True
        haystack = (
            self.full_name,
            self.identification,
            self.email,
            self.phone,
            self.address,
        )
        return any(value and needle in value.lower() for value in haystack)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> EntityRecord:
        """Build a record from a storage row keyed by column name.

        Unknown columns are kept in ``extra``. Age is taken from the row when
        present (the view computes it) and derived from the birth date
        otherwise.
        """
        if row.get("id") is None:
            raise ValueError("Row has no id")

        values: dict[str, Any] = {"id": str(row["id"])}
        extra: dict[str, Any] = {}
        for column, value in row.items():
            if column == "id":
                continue
            attr = PERSON_COLUMNS.get(column)
            if attr is None:
                extra[column] = value
            else:
                values[attr] = value

        values["full_name"] = values.get("full_name") or ""
        values["identification"] = values.get("identification") or ""
        values["identification_type"] = values.get("identification_type") or ""
        values["active"] = bool(values.get("active", True))
        values["birth_date"] = _parse_date(values.get("birth_date"))
        values["created_at"] = _parse_datetime(values.get("created_at"))

        if values.get("age") is None:
            values["age"] = compute_age(values["birth_date"])

        return cls(**values, extra=extra)


def compute_age(birth_date: date | None, *, today: date | None = None) -> int | None:
    """Whole years since ``birth_date``; one less if the birthday is still ahead."""
    if birth_date is None:
        return None
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.debug("Unparseable date %r", value)
        return None


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None
