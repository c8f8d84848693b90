"""Response models for the catalog endpoints (models, versions, images, creators, tags)"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ModelType(str, Enum):
    """CivitAI model types"""

    CHECKPOINT = "Checkpoint"
    LORA = "LORA"
    TEXTUAL_INVERSION = "TextualInversion"
    HYPERNETWORK = "Hypernetwork"
    AESTHETIC_GRADIENT = "AestheticGradient"
    CONTROLNET = "ControlNet"
    POSE = "Pose"
    VAE = "VAE"


class SortType(str, Enum):
    HIGHEST_RATED = "Highest Rated"
    MOST_LIKED = "Most Liked"
    MOST_DOWNLOADED = "Most Downloaded"
    NEWEST = "Newest"
    OLDEST = "Oldest"


class Period(str, Enum):
    ALL_TIME = "AllTime"
    YEAR = "Year"
    MONTH = "Month"
    WEEK = "Week"
    DAY = "Day"


class NSFWLevel(str, Enum):
    NONE = "None"
    SOFT = "Soft"
    MATURE = "Mature"
    X = "X"


class ApiModel(BaseModel):
    """Base for API payloads: camelCase on the wire, unknown fields ignored"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=(),
    )


class Metadata(ApiModel):
    """Pagination metadata"""

    total_items: int = 0
    total_pages: int = 0
    current_page: int = 0
    page_size: int = 0
    next_cursor: Optional[str] = None
    prev_cursor: Optional[str] = None
    next_page: Optional[str] = None
    prev_page: Optional[str] = None


class User(ApiModel):
    id: int = 0
    username: str = ""
    image: Optional[str] = None


class Stats(ApiModel):
    download_count: int = 0
    favorite_count: int = 0
    comment_count: int = 0
    rating_count: int = 0
    rating: float = 0.0
    thumbs_up_count: int = 0
    thumbs_down_count: int = 0


class Hashes(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    auto_v1: Optional[str] = Field(None, alias="AutoV1")
    auto_v2: Optional[str] = Field(None, alias="AutoV2")
    sha256: Optional[str] = Field(None, alias="SHA256")
    crc32: Optional[str] = Field(None, alias="CRC32")
    blake3: Optional[str] = Field(None, alias="BLAKE3")


class FileMetadata(ApiModel):
    fp: Optional[str] = None
    size: Optional[str] = None
    format: Optional[str] = None


class ModelFile(ApiModel):
    """Downloadable file attached to a model version"""

    id: int = 0
    download_url: str = ""
    size_kb: float = Field(0.0, alias="sizeKB")
    name: str = ""
    type: str = ""
    metadata: FileMetadata = Field(default_factory=FileMetadata)
    pickle_scan_result: Optional[str] = None
    virus_scan_result: Optional[str] = None
    hashes: Hashes = Field(default_factory=Hashes)
    primary: bool = False


class Image(ApiModel):
    id: int = 0
    url: str = ""
    nsfw: Any = None
    width: int = 0
    height: int = 0
    hash: Optional[str] = None
    type: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class ModelVersion(ApiModel):
    id: int
    model_id: int = 0
    name: str = ""
    description: Optional[str] = None
    base_model: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    trained_words: List[str] = Field(default_factory=list)
    files: List[ModelFile] = Field(default_factory=list)
    images: List[Image] = Field(default_factory=list)
    download_url: Optional[str] = None
    stats: Stats = Field(default_factory=Stats)

    @property
    def primary_file(self) -> Optional[ModelFile]:
        """Primary file, falling back to the first one"""
        for file in self.files:
            if file.primary:
                return file
        return self.files[0] if self.files else None


class ModelSummary(ApiModel):
    """Parent model summary embedded in by-hash lookups"""

    name: str = ""
    type: str = ""
    nsfw: bool = False
    poi: bool = False
    mode: Optional[str] = None


class ModelVersionByHash(ModelVersion):
    model: Optional[ModelSummary] = None


class Model(ApiModel):
    id: int
    name: str = ""
    description: Optional[str] = None
    type: str = ModelType.CHECKPOINT.value
    poi: bool = False
    nsfw: bool = False
    allow_no_credit: bool = False
    allow_commercial_use: List[str] = Field(default_factory=list)
    allow_derivatives: bool = False
    allow_different_license: bool = False
    stats: Stats = Field(default_factory=Stats)
    creator: Optional[User] = None
    tags: List[str] = Field(default_factory=list)
    model_versions: List[ModelVersion] = Field(default_factory=list)

    @field_validator("allow_commercial_use", mode="before")
    @classmethod
    def _string_or_list(cls, value: Any) -> List[str]:
        # The API returns either a single string or a list here
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value else []
        return value

    @property
    def latest_version(self) -> Optional[ModelVersion]:
        return self.model_versions[0] if self.model_versions else None


class ImageStats(ApiModel):
    cry_count: int = 0
    laugh_count: int = 0
    like_count: int = 0
    heart_count: int = 0
    comment_count: int = 0


class ImageItem(ApiModel):
    """Image returned by the images endpoint"""

    id: int
    url: str = ""
    hash: Optional[str] = None
    width: int = 0
    height: int = 0
    nsfw: Union[bool, str, None] = None
    nsfw_level: Optional[str] = None
    created_at: Optional[datetime] = None
    post_id: Optional[int] = None
    stats: ImageStats = Field(default_factory=ImageStats)
    meta: Optional[Dict[str, Any]] = None
    username: Optional[str] = None


class Creator(ApiModel):
    username: str
    model_count: int = 0
    link: str = ""


class Tag(ApiModel):
    name: str
    model_count: int = 0
    link: str = ""


T = TypeVar("T")


class Page(ApiModel, Generic[T]):
    """``{"items": [...], "metadata": {...}}`` envelope"""

    items: List[T] = Field(default_factory=list)
    metadata: Optional[Metadata] = None
