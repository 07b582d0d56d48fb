"""Pydantic models for the Numista v3 API payloads we consume."""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

log = logging.getLogger(__name__)


class NumistaBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "Numista %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class NumistaIssuer(NumistaBaseModel):
    code: str
    name: str
    level: int | None = None


class NumistaValue(NumistaBaseModel):
    text: str | None = None
    numeric_value: float | None = None


class NumistaCatalogue(NumistaBaseModel):
    id: int | None = None
    code: str


class NumistaReference(NumistaBaseModel):
    catalogue: NumistaCatalogue
    number: str

    @field_validator("number", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        if isinstance(value, int | float):
            return str(value)
        return value


class NumistaMint(NumistaBaseModel):
    id: int | None = None
    name: str | None = None
    letter: str | None = None


class NumistaType(NumistaBaseModel):
    """A catalog type as returned by ``/types/{id}`` or inside ``/types`` results."""

    id: int
    title: str
    category: str | None = None
    issuer: NumistaIssuer | None = None
    min_year: int | None = None
    max_year: int | None = None
    object_type: str | None = Field(default=None, alias="type")
    value: NumistaValue | None = None
    references: list[NumistaReference] = Field(default_factory=list)
    mints: list[NumistaMint] = Field(default_factory=list)


class NumistaSearchResponse(NumistaBaseModel):
    count: int = 0
    types: list[NumistaType] = Field(default_factory=list)


class NumistaIssue(NumistaBaseModel):
    id: int
    year: int | None = None
    gregorian_year: int | None = None
    mint_letter: str | None = None
    comment: str | None = None
    mintage: int | None = None
    marks: list[dict[str, object]] = Field(default_factory=list)
    signatures: list[dict[str, object]] = Field(default_factory=list)


class NumistaPrice(NumistaBaseModel):
    grade: str
    price: float


class NumistaPrices(NumistaBaseModel):
    currency: str
    prices: list[NumistaPrice] = Field(default_factory=list)


class NumistaIssuersResponse(NumistaBaseModel):
    count: int = 0
    issuers: list[NumistaIssuer] = Field(default_factory=list)


class NumistaErrorResponse(NumistaBaseModel):
    error_message: str | None = None
    message: str | None = None

    def text(self) -> str | None:
        return self.error_message or self.message
