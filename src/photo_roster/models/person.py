"""Person model and the location lookup tables it references.

Attribute names are English; column names follow the existing schema
(``personas``, ``paises``, ...) so the same rows can be read through the
REST endpoint without translation at the query layer.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from photo_roster.models.base import Base


class Country(Base):
    """Country lookup (``paises``)."""

    __tablename__ = "paises"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column("nombre", String(255))


class Department(Base):
    """Department / state lookup (``departamentos``)."""

    __tablename__ = "departamentos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column("nombre", String(255))
    country_id: Mapped[int | None] = mapped_column("pais_id", ForeignKey("paises.id"))


class City(Base):
    """City lookup (``ciudades``)."""

    __tablename__ = "ciudades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column("nombre", String(255))
    department_id: Mapped[int | None] = mapped_column(
        "departamento_id", ForeignKey("departamentos.id")
    )


class Neighborhood(Base):
    """Neighborhood lookup (``barrios``)."""

    __tablename__ = "barrios"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column("nombre", String(255))
    city_id: Mapped[int | None] = mapped_column("ciudad_id", ForeignKey("ciudades.id"))


class Person(Base):
    """A person shown in the roster.

    ``image_path`` is an opaque storage key inside the photo bucket; it is
    never a URL. Display URLs are derived at list time.
    """

    __tablename__ = "personas"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    full_name: Mapped[str] = mapped_column("nombre_completo", String(255))
    identification: Mapped[str] = mapped_column("identificacion", String(64), default="")
    identification_type: Mapped[str] = mapped_column(
        "tipo_identificacion", String(32), default=""
    )
    phone: Mapped[str | None] = mapped_column("telefono", String(64))
    email: Mapped[str | None] = mapped_column(String(255))
    address: Mapped[str | None] = mapped_column("direccion", String(512))
    active: Mapped[bool] = mapped_column("activo", Boolean, default=True)
    birth_date: Mapped[date | None] = mapped_column("fec_nacimiento", Date)
    image_path: Mapped[str | None] = mapped_column("foto_path", String(1024))
    country_id: Mapped[int | None] = mapped_column("pais_id", ForeignKey("paises.id"))
    department_id: Mapped[int | None] = mapped_column(
        "departamento_id", ForeignKey("departamentos.id")
    )
    city_id: Mapped[int | None] = mapped_column("ciudad_id", ForeignKey("ciudades.id"))
    neighborhood_id: Mapped[int | None] = mapped_column("barrio_id", ForeignKey("barrios.id"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
