# Models Module
# AUTO-DOC-INDEX
#
# ES: Índice rápido
#   1) Propósito del módulo
#   2) Componentes principales
#   3) Puntos de extensión
#
# EN: Quick index
#   1) Module purpose
#   2) Main components
#   3) Extension points
#
# Secciones / Sections:
#   - Configuración / Configuration
#   - Lógica principal / Core logic
#   - Integraciones / Integrations

"""Modelo inmutable de registro del padrón.

Immutable registry record model.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_TEXT_FIELDS = (
    "internal_id",
    "identity_number",
    "name",
    "name_localized",
    "surname",
    "surname_localized",
    "phone",
    "address_primary",
    "address_secondary",
    "house_number",
    "constituency_code",
    "list_part_number",
    "polling_center",
    "polling_area",
    "polling_station_address",
    "gender",
    "gender_localized",
)


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class Record(BaseModel):
    """Registro de una persona en el padrón.

    Acepta los nombres de campo del API remoto (``voterIdCard``, ``EPIC_NO``,
    ``mobileNumber``, ...) y también los nombres internos, de modo que un
    registro serializado con :meth:`to_wire` se vuelve a leer sin pérdida.

    English:
        One person entry of the registry. Accepts the remote API field names
        as well as the internal ones, so a record serialized with
        :meth:`to_wire` parses back unchanged.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    internal_id: Optional[str] = Field(
        default=None, validation_alias=_alias("internal_id", "_id", "internalId")
    )
    identity_number: Optional[str] = Field(
        default=None,
        validation_alias=_alias(
            "identity_number", "voterIdCard", "EPIC_NO", "identityNumber"
        ),
    )
    name: str = Field(default="", validation_alias=_alias("name", "FM_NAME_EN"))
    name_localized: Optional[str] = Field(
        default=None,
        validation_alias=_alias("name_localized", "name_mr", "FM_NAME_V1", "nameLocalized"),
    )
    surname: Optional[str] = Field(
        default=None, validation_alias=_alias("surname", "LASTNAME_EN")
    )
    surname_localized: Optional[str] = Field(
        default=None,
        validation_alias=_alias("surname_localized", "LASTNAME_V1", "surnameLocalized"),
    )
    phone: Optional[str] = Field(
        default=None, validation_alias=_alias("phone", "mobileNumber")
    )
    address_primary: Optional[str] = Field(
        default=None, validation_alias=_alias("address_primary", "adr1")
    )
    address_secondary: Optional[str] = Field(
        default=None, validation_alias=_alias("address_secondary", "adr2")
    )
    house_number: Optional[str] = Field(
        default=None, validation_alias=_alias("house_number", "houseNumber", "C_HOUSE_NO")
    )
    constituency_code: Optional[str] = Field(
        default=None, validation_alias=_alias("constituency_code", "AC_NO")
    )
    list_part_number: Optional[str] = Field(
        default=None, validation_alias=_alias("list_part_number", "PART_NO")
    )
    polling_center: Optional[str] = Field(
        default=None, validation_alias=_alias("polling_center", "POLLING_CENTER")
    )
    polling_area: Optional[str] = Field(
        default=None, validation_alias=_alias("polling_area", "pp")
    )
    polling_station_address: Optional[str] = Field(
        default=None,
        validation_alias=_alias(
            "polling_station_address", "POLLING_STATION_ADR1", "POLLING_STATION_ADR2"
        ),
    )
    age: Optional[Union[int, str]] = None
    gender: Optional[str] = None
    gender_localized: Optional[str] = Field(
        default=None, validation_alias=_alias("gender_localized", "gender_mr")
    )

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _coerce_text(cls, value: Any, info) -> Any:
        """Convierte números del API a texto. / Coerce numeric API values to text."""
        if value is None:
            return "" if info.field_name == "name" else None
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "Record":
        """Construye un registro desde un objeto JSON del API.

        English: Build a record from an API JSON object.
        """
        return cls.model_validate(dict(payload))

    def to_wire(self) -> dict[str, Any]:
        """Serializa con nombres internos, omitiendo vacíos.

        English: Serialize with internal field names, omitting empty values.
        """
        return self.model_dump(mode="json", exclude_none=True)
