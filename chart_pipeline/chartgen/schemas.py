"""
Pydantic models and the schema validator.

Rationale:
- One explicit contract for what the frontend sends (provider config, dataset)
  and what the model must send back (a chart spec).
- Model output is unreliable, so `validate` never raises: it collects every
  violated constraint into readable messages that can be shown verbatim.
- Wire names are camelCase (apiKey, xAxisKey, ...); Python names are snake_case.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

MODEL_NAME_PATTERN = r"^[a-zA-Z0-9_\-:.]+$"
MODEL_NAME_MAX_LENGTH = 50

# Hosts accepted for the local Ollama daemon.
LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})

QUERY_MIN_LENGTH = 5
QUERY_MAX_LENGTH = 500

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
MAX_DATA_POINTS = 2000

MAX_FILE_SIZE_MB = 5
ALLOWED_FILE_EXTENSIONS = ("csv", "xlsx", "xls")


class Provider(str, Enum):
    GOOGLE = "GOOGLE"
    OPENAI = "OPENAI"
    ANTHROPIC = "ANTHROPIC"
    OPENAI_COMPATIBLE = "OPENAI_COMPATIBLE"
    OLLAMA = "OLLAMA"


PROVIDER_LABELS = {
    Provider.GOOGLE: "Google Gemini",
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.OPENAI_COMPATIBLE: "OpenAI Compatible",
    Provider.OLLAMA: "Ollama",
}


class ChartType(str, Enum):
    BAR = "BAR"
    LINE = "LINE"
    AREA = "AREA"
    PIE = "PIE"


DataValue = Union[StrictStr, StrictInt, StrictFloat]
DataPoint = Dict[str, DataValue]
DatasetValue = Union[StrictStr, StrictInt, StrictFloat, StrictBool, None]
DatasetRow = Dict[str, DatasetValue]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _upper(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


def _bounded_text(value: str, label: str, max_length: int) -> str:
    if not value:
        raise ValueError(f"{label} cannot be empty")
    if len(value) > max_length:
        raise ValueError(f"{label} is too long (max {max_length} characters)")
    return value


class ProviderConfig(WireModel):
    """Which LLM to call and how to authenticate. Re-validated on every use."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, revalidate_instances="always"
    )

    provider: Provider
    api_key: Optional[str] = None
    model: str
    base_url: Optional[str] = None

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> Any:
        return _upper(value)

    @field_validator("model")
    @classmethod
    def _check_model(cls, value: str) -> str:
        if not value:
            raise ValueError("Model name cannot be empty")
        if len(value) > MODEL_NAME_MAX_LENGTH:
            raise ValueError(f"Model name is too long (max {MODEL_NAME_MAX_LENGTH} characters)")
        if not re.match(MODEL_NAME_PATTERN, value):
            raise ValueError(
                "Model name can only contain letters, numbers, and these characters: _ - : ."
            )
        return value

    @field_validator("base_url", mode="before")
    @classmethod
    def _blank_url_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("base_url")
    @classmethod
    def _check_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Base URL is not a valid http(s) URL: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_provider_requirements(self) -> "ProviderConfig":
        problems: List[str] = []
        label = PROVIDER_LABELS[self.provider]
        if self.provider in (Provider.OPENAI, Provider.ANTHROPIC):
            if not self.api_key or not self.api_key.strip():
                problems.append(f"apiKey is required for {label}")
        if self.provider in (Provider.OPENAI_COMPATIBLE, Provider.OLLAMA):
            if not self.base_url:
                problems.append(f"baseUrl is required for {label} providers")
        if self.provider is Provider.OLLAMA and self.base_url:
            host = urlparse(self.base_url).hostname
            if host not in LOOPBACK_HOSTS:
                allowed = ", ".join(sorted(LOOPBACK_HOSTS))
                problems.append(f"baseUrl host for Ollama must be one of: {allowed}")
        if problems:
            raise ValueError("; ".join(problems))
        return self


class DynamicData(WireModel):
    """An uploaded dataset as the upload step hands it over."""

    dataset: List[DatasetRow] = Field(default_factory=list)
    schema_description: str = Field(alias="schema")
    file_name: str
    suggestions: Optional[List[str]] = None


class ChartSpec(WireModel):
    """Validated, renderer-ready chart. Never mutated once returned."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title: str
    description: str
    type: ChartType
    x_axis_key: str
    data_key: str
    data: List[DataPoint]
    id: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        # model output casing is unreliable ("bar", "Bar")
        return _upper(value)

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        return _bounded_text(value, "Chart title", TITLE_MAX_LENGTH)

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        return _bounded_text(value, "Chart description", DESCRIPTION_MAX_LENGTH)

    @field_validator("x_axis_key")
    @classmethod
    def _check_x_axis_key(cls, value: str) -> str:
        if not value:
            raise ValueError("X-axis key cannot be empty")
        return value

    @field_validator("data_key")
    @classmethod
    def _check_data_key(cls, value: str) -> str:
        if not value:
            raise ValueError("Data key cannot be empty")
        return value

    @field_validator("data")
    @classmethod
    def _check_data_size(cls, value: List[DataPoint]) -> List[DataPoint]:
        if not value:
            raise ValueError("Chart must have at least one data point")
        if len(value) > MAX_DATA_POINTS:
            raise ValueError(f"Too many data points (max {MAX_DATA_POINTS})")
        return value

    @model_validator(mode="after")
    def _check_points(self) -> "ChartSpec":
        problems: List[str] = []
        if any(self.x_axis_key not in p or self.data_key not in p for p in self.data):
            problems.append("All data points must contain both xAxisKey and dataKey fields")
        if any(isinstance(p.get(self.data_key), str) for p in self.data):
            problems.append("All dataKey values must be numbers for proper chart rendering")
        if problems:
            raise ValueError("; ".join(problems))
        return self

    def with_id(self, chart_id: str) -> "ChartSpec":
        return self.model_copy(update={"id": chart_id})


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


def _check_query(value: str) -> str:
    if not value:
        raise ValueError("Query cannot be empty after trimming whitespace")
    if len(value) < QUERY_MIN_LENGTH:
        raise ValueError(f"Query is too short (minimum {QUERY_MIN_LENGTH} characters)")
    if len(value) > QUERY_MAX_LENGTH:
        raise ValueError(f"Query is too long (maximum {QUERY_MAX_LENGTH} characters)")
    return value


UserQuery = Annotated[str, StringConstraints(strip_whitespace=True, strict=True), AfterValidator(_check_query)]
USER_QUERY = TypeAdapter(UserQuery)


class FileUpload(WireModel):
    """Upload metadata checked before the file is parsed."""

    file_name: str
    size_bytes: int

    @field_validator("file_name")
    @classmethod
    def _check_extension(cls, value: str) -> str:
        extension = value.rsplit(".", 1)[-1].lower() if "." in value else ""
        if extension not in ALLOWED_FILE_EXTENSIONS:
            raise ValueError("Unsupported file format. Please upload CSV or Excel.")
        return value

    @field_validator("size_bytes")
    @classmethod
    def _check_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("File is empty")
        if value > MAX_FILE_SIZE_MB * 1024 * 1024:
            raise ValueError(f"File is too large (max {MAX_FILE_SIZE_MB} MB)")
        return value


class GenerateRequest(WireModel):
    """Body of POST /api/generate. Nested parts are validated by the dispatcher."""

    prompt: Optional[str] = None
    config: Optional[Dict[str, Any]] = None
    dynamic_data: Optional[Dict[str, Any]] = None
    mode: Optional[str] = None


class SuggestionsResponse(BaseModel):
    suggestions: List[str]


@dataclass
class ValidationResult:
    success: bool
    data: Any = None
    errors: List[str] = field(default_factory=list)

    @property
    def error(self) -> str:
        return ", ".join(self.errors)


def _format_errors(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        if err["type"] == "value_error":
            msg = str(err["ctx"]["error"])
        else:
            msg = err["msg"]
        loc = ".".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


def validate(schema: Any, value: Any) -> ValidationResult:
    """
    Validate `value` against a model class or a TypeAdapter.
    Never raises; every violation ends up in `errors`.
    """
    try:
        if isinstance(schema, TypeAdapter):
            data = schema.validate_python(value)
        else:
            data = schema.model_validate(value)
    except ValidationError as exc:
        return ValidationResult(success=False, errors=_format_errors(exc))
    return ValidationResult(success=True, data=data)


async def safe_validate(schema: Any, value: Any) -> ValidationResult:
    """Awaitable form used by adapters and the dispatcher."""
    return validate(schema, value)


def validate_query(text: Any) -> ValidationResult:
    return validate(USER_QUERY, text)
