"""Naming convention conversion between declared names and implementing members.

Capability names usually follow wire conventions (snake_case tools, kebab-case
servers) while implementing members follow host conventions. These helpers map
one to the other. A name already in the target convention comes back unchanged,
so every conversion is idempotent.
"""

import re
from typing import List

_UPPER = re.compile(r"[A-Z]")
_SEPARATOR_LETTER = re.compile(r"[_\-\s]+([a-zA-Z0-9])")
_NON_IDENTIFIER = re.compile(r"[^0-9a-zA-Z]+")


def to_snake_case(name: str) -> str:
    """Convert camelCase/PascalCase/kebab-case to snake_case.

    Names that already contain an underscore are returned unchanged.

    >>> to_snake_case("getWeather")
    'get_weather'
    >>> to_snake_case("parseJSONResponse")
    'parse_j_s_o_n_response'
    """
    if "_" in name:
        return name
    if "-" in name or " " in name:
        return re.sub(r"[\-\s]+", "_", name).lower()
    converted = _UPPER.sub(lambda m: "_" + m.group(0).lower(), name)
    if converted.startswith("_") and not name.startswith("_"):
        converted = converted[1:]
    return converted


def to_camel_case(name: str) -> str:
    """Convert snake_case/kebab-case to camelCase.

    Names without separators are returned unchanged. A leading separator
    capitalizes the following letter (``_get_data`` -> ``GetData``).
    """
    if not re.search(r"[_\-\s]", name):
        return name
    return _SEPARATOR_LETTER.sub(lambda m: m.group(1).upper(), name)


def to_pascal_case(name: str) -> str:
    """Convert any supported convention to PascalCase."""
    camel = to_camel_case(name)
    if not camel:
        return camel
    return camel[0].upper() + camel[1:]


def to_kebab_case(name: str) -> str:
    """Convert camelCase/snake_case/space separated text to kebab-case.

    >>> to_kebab_case("My Weather_Server")
    'my-weather-server'
    """
    converted = _UPPER.sub(lambda m: "-" + m.group(0).lower(), name.strip())
    converted = re.sub(r"[_\s]+", "-", converted)
    converted = re.sub(r"-{2,}", "-", converted)
    return converted.strip("-")


def variants_of(name: str) -> List[str]:
    """Deduplicated naming variants: original, snake, camel, Pascal, kebab."""
    candidates = [
        name,
        to_snake_case(name),
        to_camel_case(name),
        to_pascal_case(name),
        to_kebab_case(name),
    ]
    variants: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


def identifier_from_uri(uri: str) -> str:
    """Derive a Python identifier from a resource URI.

    ``config://server`` -> ``config_server``
    """
    identifier = _NON_IDENTIFIER.sub("_", uri).strip("_")
    if identifier and identifier[0].isdigit():
        identifier = "_" + identifier
    return identifier
