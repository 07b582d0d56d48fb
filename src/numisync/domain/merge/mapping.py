"""Local field ← catalog path mapping table and the transforms it uses."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from numisync.domain.enums import Priority

type Transform = Callable[[object], object | None]

_VALUE_NUMBER = re.compile(r"^[\d/.]+")
_VALUE_UNIT = re.compile(r"[^\W\d_]+$")


@dataclass(frozen=True, slots=True, kw_only=True)
class FieldMapping:
    catalog_path: str
    priority: Priority
    enabled: bool = True
    transform: Transform | None = None
    requires_issue_data: bool = False
    requires_pricing_data: bool = False
    catalog_code: str | None = None
    description: str = ""


def _names(value: object) -> list[str]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        return []
    names: list[str] = []
    for item in value:
        if isinstance(item, Mapping):
            name = item.get("name")
            if name:
                names.append(str(name))
        elif item:
            names.append(str(item))
    return names


def ruler_names(value: object) -> str | None:
    names = _names(value)
    return " / ".join(names) if names else None


def ruler_period(value: object) -> str | None:
    if not isinstance(value, Sequence) or isinstance(value, str):
        return None
    groups: list[str] = []
    for ruler in value:
        group = ruler.get("group") if isinstance(ruler, Mapping) else None
        name = group.get("name") if isinstance(group, Mapping) else None
        if name and name not in groups:
            groups.append(str(name))
    return " / ".join(groups) if groups else None


def value_number(value: object) -> str | None:
    """``"1/2 Dollar"`` → ``"1/2"``; text without a leading number is kept whole."""

    if not value:
        return None
    text = str(value)
    found = _VALUE_NUMBER.match(text)
    return found.group(0) if found else text


def value_unit(value: object) -> str | None:
    """``"10 Kopeks"`` → ``"Kopeks"``: the trailing run of letters."""

    if not value:
        return None
    found = _VALUE_UNIT.search(str(value).strip())
    return found.group(0) if found else None


def first_mint_name(value: object) -> str | None:
    if not isinstance(value, Sequence) or isinstance(value, str) or not value:
        return None
    first = value[0]
    if isinstance(first, Mapping) and first.get("name"):
        return str(first["name"])
    return None


_ORIENTATION_AXIS: Final[Mapping[str, str]] = MappingProxyType({"coin": "6", "medal": "12"})


def orientation_axis(value: object) -> str | None:
    if not value:
        return None
    return _ORIENTATION_AXIS.get(str(value))


def joined_people(value: object) -> str | None:
    names = _names(value)
    return " / ".join(names) if names else None


def to_text(value: object) -> str | None:
    return str(value) if value else None


PRICE_GRADES: Final[Mapping[str, str]] = MappingProxyType(
    {"price1": "unc", "price2": "xf", "price3": "vf", "price4": "f"}
)

_H, _M, _L = Priority.HIGH, Priority.MEDIUM, Priority.LOW

DEFAULT_FIELD_MAPPING: Final[Mapping[str, FieldMapping]] = MappingProxyType(
    {
        "title": FieldMapping(catalog_path="title", priority=_H, description="Coin title"),
        "category": FieldMapping(catalog_path="category", priority=_M, description="Category"),
        "series": FieldMapping(catalog_path="series", priority=_M, description="Series name"),
        "country": FieldMapping(
            catalog_path="issuer.name", priority=_H, description="Issuing country or entity"
        ),
        "period": FieldMapping(
            catalog_path="ruler",
            priority=_M,
            transform=ruler_period,
            description="Historical period",
        ),
        "type": FieldMapping(catalog_path="type", priority=_M, description="Coin type"),
        "ruler": FieldMapping(
            catalog_path="ruler", priority=_M, transform=ruler_names, description="Ruler name(s)"
        ),
        "mint": FieldMapping(
            catalog_path="mints",
            priority=_M,
            transform=first_mint_name,
            description="Mint name, resolved from the issue's mint letter when available",
        ),
        "value": FieldMapping(
            catalog_path="value.text",
            priority=_H,
            transform=value_number,
            description="Face value (numeric part)",
        ),
        "unit": FieldMapping(
            catalog_path="value.text",
            priority=_H,
            transform=value_unit,
            description="Currency unit",
        ),
        "material": FieldMapping(
            catalog_path="composition.text", priority=_H, description="Composition"
        ),
        "weight": FieldMapping(catalog_path="weight", priority=_H, description="Weight in grams"),
        "diameter": FieldMapping(catalog_path="size", priority=_H, description="Diameter in mm"),
        "thickness": FieldMapping(
            catalog_path="thickness", priority=_M, description="Thickness in mm"
        ),
        "shape": FieldMapping(catalog_path="shape", priority=_M, description="Shape"),
        "edge": FieldMapping(
            catalog_path="edge.description", priority=_M, description="Edge description"
        ),
        "edgelabel": FieldMapping(
            catalog_path="edge.lettering", priority=_L, description="Edge lettering"
        ),
        "obversedesign": FieldMapping(
            catalog_path="obverse.description", priority=_H, description="Obverse design"
        ),
        "obversedesigner": FieldMapping(
            catalog_path="obverse.designers",
            priority=_M,
            transform=joined_people,
            description="Obverse designer(s)",
        ),
        "obverseengraver": FieldMapping(
            catalog_path="obverse.engravers",
            priority=_L,
            transform=joined_people,
            description="Obverse engraver(s)",
        ),
        "obversevar": FieldMapping(
            catalog_path="obverse.description",
            priority=_L,
            enabled=False,
            description="Obverse variant",
        ),
        "reversedesign": FieldMapping(
            catalog_path="reverse.description", priority=_H, description="Reverse design"
        ),
        "reversedesigner": FieldMapping(
            catalog_path="reverse.designers",
            priority=_M,
            transform=joined_people,
            description="Reverse designer(s)",
        ),
        "reverseengraver": FieldMapping(
            catalog_path="reverse.engravers",
            priority=_L,
            transform=joined_people,
            description="Reverse engraver(s)",
        ),
        "reversevar": FieldMapping(
            catalog_path="reverse.description",
            priority=_L,
            enabled=False,
            description="Reverse variant",
        ),
        "obverseimg": FieldMapping(
            catalog_path="obverse.picture", priority=_H, description="Obverse image URL"
        ),
        "reverseimg": FieldMapping(
            catalog_path="reverse.picture", priority=_H, description="Reverse image URL"
        ),
        "edgeimg": FieldMapping(
            catalog_path="edge.picture", priority=_L, description="Edge image URL"
        ),
        "mintage": FieldMapping(
            catalog_path="issue.mintage",
            priority=_M,
            requires_issue_data=True,
            description="Mintage of the matched issue",
        ),
        "mintmark": FieldMapping(
            catalog_path="issue.mint_letter",
            priority=_M,
            requires_issue_data=True,
            description="Mint mark of the matched issue",
        ),
        "price1": FieldMapping(
            catalog_path="pricing.unc",
            priority=_M,
            requires_issue_data=True,
            requires_pricing_data=True,
            description="Price, uncirculated",
        ),
        "price2": FieldMapping(
            catalog_path="pricing.xf",
            priority=_M,
            requires_issue_data=True,
            requires_pricing_data=True,
            description="Price, extremely fine",
        ),
        "price3": FieldMapping(
            catalog_path="pricing.vf",
            priority=_M,
            requires_issue_data=True,
            requires_pricing_data=True,
            description="Price, very fine",
        ),
        "price4": FieldMapping(
            catalog_path="pricing.f",
            priority=_M,
            requires_issue_data=True,
            requires_pricing_data=True,
            description="Price, fine",
        ),
        "axis": FieldMapping(
            catalog_path="orientation",
            priority=_L,
            enabled=False,
            transform=orientation_axis,
            description="Die axis (coin=6, medal=12)",
        ),
        "catalognum1": FieldMapping(
            catalog_path="references",
            priority=_H,
            catalog_code="KM",
            description="Primary catalog number",
        ),
        "catalognum2": FieldMapping(
            catalog_path="references",
            priority=_M,
            catalog_code="Schön",
            description="Secondary catalog number",
        ),
        "catalognum3": FieldMapping(
            catalog_path="references",
            priority=_L,
            catalog_code="Y",
            description="Tertiary catalog number",
        ),
        "catalognum4": FieldMapping(
            catalog_path="id",
            priority=_L,
            transform=to_text,
            catalog_code="Numista",
            description="Numista catalog number",
        ),
    }
)


def get_catalog_number(references: object, catalog_code: str) -> str | None:
    if not isinstance(references, Sequence) or isinstance(references, str):
        return None
    for reference in references:
        if not isinstance(reference, Mapping):
            continue
        catalogue = reference.get("catalogue")
        if isinstance(catalogue, Mapping) and catalogue.get("code") == catalog_code:
            number = reference.get("number")
            return str(number) if number is not None else None
    return None


def get_nested_value(data: object, path: str | None) -> object | None:
    """Walk a dotted ``path`` through nested mappings; missing keys yield ``None``."""

    if data is None or not path:
        return None
    value: object | None = data
    for key in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


CATALOG_DISPLAY_NAMES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "KM": "Krause",
        "Schön": "Schön",
        "Sch": "Schön",
        "Y": "Yeoman",
        "Numista": "Numista",
        "N": "Numista",
    }
)


def catalog_display_name(code: str) -> str:
    return CATALOG_DISPLAY_NAMES.get(code, code)


def format_catalog_for_display(catalog_code: str, number: object) -> str | None:
    if not number:
        return None
    return f"{catalog_display_name(catalog_code)}# {number}"
