"""Query parameters for the list endpoints.

Each params object validates its bounds in ``validate()`` and renders itself
with ``to_query()``; unset (empty/zero) values are left out of the query.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from civitai_sdk.domain.errors import InvalidParameterError

MAX_LIMIT = 200
MAX_QUERY_LENGTH = 500
MAX_NAME_LENGTH = 100

_HASH_RE = re.compile(r"[a-fA-F0-9]+")


def _value(item: Union[str, Enum]) -> str:
    return str(item.value) if isinstance(item, Enum) else str(item)


def _bool(flag: bool) -> str:
    return "true" if flag else "false"


def _check_paging(limit: int, page: int) -> None:
    if limit < 0:
        raise InvalidParameterError("limit cannot be negative")
    if limit > MAX_LIMIT:
        raise InvalidParameterError(f"limit cannot exceed {MAX_LIMIT}")
    if page < 0:
        raise InvalidParameterError("page cannot be negative")


def _check_length(name: str, value: str, max_length: int) -> None:
    if len(value) > max_length:
        raise InvalidParameterError(f"{name} parameter too long (max {max_length} characters)")


def validate_model_id(model_id: int) -> None:
    if not isinstance(model_id, int) or model_id <= 0:
        raise InvalidParameterError("model ID must be a positive integer")


def validate_version_id(version_id: int) -> None:
    if not isinstance(version_id, int) or version_id <= 0:
        raise InvalidParameterError("version ID must be a positive integer")


def validate_hash(file_hash: str) -> None:
    """Accept AutoV1/AutoV2/SHA256/CRC32/Blake3 style hex digests"""
    if not file_hash:
        raise InvalidParameterError("hash cannot be empty")
    if not _HASH_RE.fullmatch(file_hash):
        raise InvalidParameterError("hash must contain only hexadecimal characters")
    if len(file_hash) < 8 or len(file_hash) > 128:
        raise InvalidParameterError("hash length must be between 8 and 128 characters")


@dataclass
class SearchParams:
    """Parameters for the models search endpoint"""

    query: str = ""
    types: List[Union[str, Enum]] = field(default_factory=list)
    sort: Union[str, Enum] = ""
    period: Union[str, Enum] = ""
    rating: int = 0
    page: int = 0
    limit: int = 0
    cursor: str = ""
    tag: str = ""
    username: str = ""
    favorites: bool = False
    hidden: bool = False
    primary_file_only: bool = False
    allow_no_credit: bool = False
    allow_derivatives: bool = False
    allow_different_license: bool = False
    allow_commercial_use: List[str] = field(default_factory=list)
    nsfw: Optional[bool] = None
    supports_generation: Optional[bool] = None

    def validate(self) -> None:
        _check_paging(self.limit, self.page)
        if self.rating < 0 or self.rating > 5:
            raise InvalidParameterError("rating must be between 0 and 5")
        _check_length("query", self.query, MAX_QUERY_LENGTH)
        _check_length("tag", self.tag, MAX_NAME_LENGTH)
        _check_length("username", self.username, MAX_NAME_LENGTH)

    def to_query(self) -> Dict[str, str]:
        query: Dict[str, str] = {}
        if self.query:
            query["query"] = self.query
        if self.types:
            query["types"] = ",".join(_value(t) for t in self.types)
        if self.sort:
            query["sort"] = _value(self.sort)
        if self.period:
            query["period"] = _value(self.period)
        if self.rating > 0:
            query["rating"] = str(self.rating)
        if self.page > 0:
            query["page"] = str(self.page)
        if self.limit > 0:
            query["limit"] = str(self.limit)
        if self.cursor:
            query["cursor"] = self.cursor
        if self.tag:
            query["tag"] = self.tag
        if self.username:
            query["username"] = self.username
        for key, flag in (
            ("favorites", self.favorites),
            ("hidden", self.hidden),
            ("primaryFileOnly", self.primary_file_only),
            ("allowNoCredit", self.allow_no_credit),
            ("allowDerivatives", self.allow_derivatives),
            ("allowDifferentLicense", self.allow_different_license),
        ):
            if flag:
                query[key] = "true"
        if self.allow_commercial_use:
            query["allowCommercialUse"] = ",".join(self.allow_commercial_use)
        if self.nsfw is not None:
            query["nsfw"] = _bool(self.nsfw)
        if self.supports_generation is not None:
            query["supportsGeneration"] = _bool(self.supports_generation)
        return query


@dataclass
class ImageParams:
    """Parameters for the images endpoint"""

    limit: int = 0
    post_id: int = 0
    model_id: int = 0
    model_version_id: int = 0
    username: str = ""
    nsfw: Union[str, Enum] = ""  # None, Soft, Mature, X
    sort: str = ""  # Most Reactions, Most Comments, Newest
    period: Union[str, Enum] = ""
    page: int = 0

    def validate(self) -> None:
        _check_paging(self.limit, self.page)
        if self.post_id < 0:
            raise InvalidParameterError("post ID cannot be negative")
        if self.model_id < 0:
            raise InvalidParameterError("model ID cannot be negative")
        if self.model_version_id < 0:
            raise InvalidParameterError("model version ID cannot be negative")
        _check_length("username", self.username, MAX_NAME_LENGTH)

    def to_query(self) -> Dict[str, str]:
        query: Dict[str, str] = {}
        if self.limit > 0:
            query["limit"] = str(self.limit)
        if self.post_id > 0:
            query["postId"] = str(self.post_id)
        if self.model_id > 0:
            query["modelId"] = str(self.model_id)
        if self.model_version_id > 0:
            query["modelVersionId"] = str(self.model_version_id)
        if self.username:
            query["username"] = self.username
        if self.nsfw:
            query["nsfw"] = _value(self.nsfw)
        if self.sort:
            query["sort"] = self.sort
        if self.period:
            query["period"] = _value(self.period)
        if self.page > 0:
            query["page"] = str(self.page)
        return query


@dataclass
class CreatorParams:
    """Parameters for the creators endpoint"""

    limit: int = 0
    page: int = 0
    query: str = ""

    def validate(self) -> None:
        _check_paging(self.limit, self.page)
        _check_length("query", self.query, MAX_QUERY_LENGTH)

    def to_query(self) -> Dict[str, str]:
        query: Dict[str, str] = {}
        if self.limit > 0:
            query["limit"] = str(self.limit)
        if self.page > 0:
            query["page"] = str(self.page)
        if self.query:
            query["query"] = self.query
        return query


@dataclass
class TagParams(CreatorParams):
    """Parameters for the tags endpoint (same shape as creators)"""

    pass
