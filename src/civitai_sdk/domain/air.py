"""AIR (AI Resource Identifier) parsing, validation and building.

Wire format::

    urn:air:{ecosystem}:{type}:{source}:{id}[@{version}][:{layer}][.{format}]

``parse_air`` validates automatically. The fluent builder path
(``AIR.new(...).with_version(...)``) does not: call ``validate()`` when the
identifier is complete, or use ``AIR.checked(...)`` to validate up front.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, List, Optional

from civitai_sdk.domain.errors import AIRError, AIRFormatError, AIRValidationError


class AIREcosystem(str, Enum):
    """Supported AI ecosystems"""

    SD1 = "sd1"
    SD2 = "sd2"
    SDXL = "sdxl"
    GPT = "gpt"
    FLUX = "flux"


class AIRType(str, Enum):
    """Supported resource types"""

    MODEL = "model"
    LORA = "lora"
    EMBEDDING = "embedding"
    VAE = "vae"
    CONTROL = "control"


class AIRSource(str, Enum):
    """Supported source platforms"""

    CIVITAI = "civitai"
    HUGGINGFACE = "huggingface"
    OPENAI = "openai"


VALID_ECOSYSTEMS = frozenset(e.value for e in AIREcosystem)
VALID_TYPES = frozenset(t.value for t in AIRType)
VALID_SOURCES = frozenset(s.value for s in AIRSource)

AIR_PATTERN = re.compile(
    r"urn:air:([^:]+):([^:]+):([^:]+):([^@]+)(?:@([^:.]+))?(?::([^.]+))?(?:\.(.+))?"
)


def _text(value: object) -> str:
    """Enum members collapse to their value, None to empty string"""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class AIR:
    """AI Resource Identifier.

    Mandatory fields: ecosystem, type, source, id.
    Optional fields: version, layer, format (absent is always "").
    ``raw`` holds the string the identifier was parsed from and is not part
    of equality.
    """

    __slots__ = ("ecosystem", "type", "source", "id", "version", "layer", "format", "raw")

    def __init__(
        self,
        ecosystem: object = "",
        type: object = "",
        source: object = "",
        id: object = "",
        version: object = "",
        layer: object = "",
        format: object = "",
        raw: str = "",
    ):
        self.ecosystem = _text(ecosystem)
        self.type = _text(type)
        self.source = _text(source)
        self.id = _text(id)
        self.version = _text(version)
        self.layer = _text(layer)
        self.format = _text(format)
        self.raw = raw

    @classmethod
    def new(cls, ecosystem: object, resource_type: object, source: object, resource_id: object) -> "AIR":
        """Create an AIR from its mandatory parts without validating"""
        return cls(ecosystem, resource_type, source, resource_id)

    @classmethod
    def checked(
        cls,
        ecosystem: object,
        resource_type: object,
        source: object,
        resource_id: object,
        version: object = "",
        layer: object = "",
        format: object = "",
    ) -> "AIR":
        """Create an AIR and validate it immediately

        Raises:
            AIRValidationError: If any field is missing or outside its vocabulary
        """
        air = cls(ecosystem, resource_type, source, resource_id, version, layer, format)
        air.validate()
        return air

    @classmethod
    def for_civitai_model(
        cls, ecosystem: object, model_id: int, version_id: Optional[int] = None
    ) -> "AIR":
        """Create an AIR pointing at a CivitAI model (and optionally one of its versions)"""
        air = cls(ecosystem, AIRType.MODEL, AIRSource.CIVITAI, str(model_id))
        if version_id is not None and version_id > 0:
            air.version = str(version_id)
        return air

    # Fluent builder

    def with_version(self, version: object) -> "AIR":
        self.version = _text(version)
        return self

    def with_layer(self, layer: object) -> "AIR":
        self.layer = _text(layer)
        return self

    def with_format(self, format: object) -> "AIR":
        self.format = _text(format)
        return self

    # Validation

    def validate(self) -> None:
        """Check mandatory fields and vocabularies

        Raises:
            AIRValidationError: On the first failing field
        """
        if not self.ecosystem:
            raise AIRValidationError("ecosystem is required")
        if not self.type:
            raise AIRValidationError("type is required")
        if not self.source:
            raise AIRValidationError("source is required")
        if not self.id:
            raise AIRValidationError("ID is required")
        if not self.is_valid_ecosystem():
            raise AIRValidationError(f"unsupported ecosystem: {self.ecosystem}")
        if not self.is_valid_type():
            raise AIRValidationError(f"unsupported type: {self.type}")
        if not self.is_valid_source():
            raise AIRValidationError(f"unsupported source: {self.source}")

    def is_valid(self) -> bool:
        try:
            self.validate()
        except AIRValidationError:
            return False
        return True

    def is_valid_ecosystem(self) -> bool:
        return self.ecosystem in VALID_ECOSYSTEMS

    def is_valid_type(self) -> bool:
        return self.type in VALID_TYPES

    def is_valid_source(self) -> bool:
        return self.source in VALID_SOURCES

    # Helpers

    def is_civitai(self) -> bool:
        return self.source == AIRSource.CIVITAI.value

    def is_version_specific(self) -> bool:
        return self.version != ""

    def is_format_specific(self) -> bool:
        return self.format != ""

    def has_layer(self) -> bool:
        return self.layer != ""

    def model_id(self) -> int:
        """Return the numeric model ID of a CivitAI resource

        Raises:
            AIRError: If the resource is not from CivitAI or the ID is not numeric
        """
        if not self.is_civitai():
            raise AIRError(f"not a CivitAI resource: {self.source}")
        if not (self.id.isascii() and self.id.isdigit()):
            raise AIRError(f"invalid model ID: {self.id}")
        return int(self.id)

    def version_id(self) -> int:
        """Return the numeric version ID of a CivitAI resource

        Raises:
            AIRError: If the resource is not from CivitAI, has no version, or the version is not numeric
        """
        if not self.is_civitai():
            raise AIRError(f"not a CivitAI resource: {self.source}")
        if not self.version:
            raise AIRError("no version specified in AIR")
        if not (self.version.isascii() and self.version.isdigit()):
            raise AIRError(f"invalid version ID: {self.version}")
        return int(self.version)

    def to_model_type(self) -> str:
        """Map the AIR type onto the CivitAI model type name"""
        return _MODEL_TYPES.get(self.type, "Checkpoint")

    def clone(self) -> "AIR":
        return AIR(
            self.ecosystem,
            self.type,
            self.source,
            self.id,
            self.version,
            self.layer,
            self.format,
            raw=self.raw,
        )

    def _fields(self) -> tuple:
        return (
            self.ecosystem,
            self.type,
            self.source,
            self.id,
            self.version,
            self.layer,
            self.format,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AIR):
            return NotImplemented
        return self._fields() == other._fields()

    __hash__ = None  # mutable

    def __str__(self) -> str:
        air = f"urn:air:{self.ecosystem}:{self.type}:{self.source}:{self.id}"
        if self.version:
            air += "@" + self.version
        if self.layer:
            air += ":" + self.layer
        if self.format:
            air += "." + self.format
        return air

    def __repr__(self) -> str:
        return f"AIR({str(self)!r})"


_MODEL_TYPES = {
    AIRType.MODEL.value: "Checkpoint",
    AIRType.LORA.value: "LORA",
    AIRType.EMBEDDING.value: "TextualInversion",
    AIRType.VAE.value: "VAE",
    AIRType.CONTROL.value: "ControlNet",
}


def parse_air(air_string: str) -> AIR:
    """Parse an AIR string

    Args:
        air_string: String in ``urn:air:...`` form

    Returns:
        Validated AIR

    Raises:
        AIRFormatError: If the string does not match the grammar
        AIRValidationError: If it matches but a field is outside its vocabulary
    """
    if not air_string:
        raise AIRFormatError("AIR string cannot be empty")

    match = AIR_PATTERN.fullmatch(air_string)
    if match is None:
        raise AIRFormatError(f"invalid AIR format: {air_string}")

    ecosystem, resource_type, source, resource_id, version, layer, format = match.groups()
    air = AIR(
        ecosystem,
        resource_type,
        source,
        resource_id,
        version or "",
        layer or "",
        format or "",
        raw=air_string,
    )

    try:
        air.validate()
    except AIRValidationError as e:
        raise AIRValidationError(f"invalid AIR: {e}") from e
    return air


class AIRCollection(List[AIR]):
    """List of AIR identifiers with filtering helpers"""

    def __init__(self, airs: Iterable[AIR] = ()):
        super().__init__(airs)

    def filter_by_ecosystem(self, ecosystem: object) -> "AIRCollection":
        value = _text(ecosystem)
        return AIRCollection(a for a in self if a.ecosystem == value)

    def filter_by_type(self, resource_type: object) -> "AIRCollection":
        value = _text(resource_type)
        return AIRCollection(a for a in self if a.type == value)

    def filter_by_source(self, source: object) -> "AIRCollection":
        value = _text(source)
        return AIRCollection(a for a in self if a.source == value)

    def civitai_only(self) -> "AIRCollection":
        return self.filter_by_source(AIRSource.CIVITAI)

    def strings(self) -> List[str]:
        return [str(a) for a in self]
