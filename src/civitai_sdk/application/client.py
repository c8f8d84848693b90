"""CivitAI API client: endpoint methods on top of the shared request pipeline"""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import quote, urlencode

import requests

from civitai_sdk.domain.air import AIR, AIRType, parse_air
from civitai_sdk.domain.config import AppConfig
from civitai_sdk.domain.errors import AIRError, APIError, CivitAIError, InvalidParameterError
from civitai_sdk.domain.models.catalog import (
    Creator,
    ImageItem,
    Metadata,
    Model,
    ModelVersion,
    ModelVersionByHash,
    NSFWLevel,
    Page,
    SortType,
    Tag,
)
from civitai_sdk.domain.models.params import (
    CreatorParams,
    ImageParams,
    SearchParams,
    TagParams,
    validate_hash,
    validate_model_id,
    validate_version_id,
)
from civitai_sdk.infrastructure.cancellation import CancelToken
from civitai_sdk.infrastructure.config.config_manager import ConfigManager
from civitai_sdk.infrastructure.decoding import BoundedResponseDecoder
from civitai_sdk.infrastructure.http_client import RequestExecutor, RetryPolicy
from civitai_sdk.infrastructure.retry import RandomSource

logger = logging.getLogger(__name__)


class CivitAIClient:
    """Client for the CivitAI REST API

    Every endpoint accepts an optional ``cancel`` token; its deadline bounds the
    whole call including retries and backoff waits.

    Usage:
        with CivitAIClient() as client:
            models, metadata = client.search_models(SearchParams(query="anime", limit=10))
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        rng: Optional[RandomSource] = None,
    ):
        """Initialize client

        Args:
            config: Application configuration (defaults apply when None)
            session: Session to dispatch requests with; the client closes it
                only if it created it
            rng: Random source for backoff jitter
        """
        self.config = config or AppConfig()
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

        client_config = self.config.client
        self.base_url = client_config.base_url
        headers = {
            "User-Agent": client_config.user_agent,
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
        }
        headers.update(client_config.default_headers)

        self.executor = RequestExecutor(
            self.session,
            RetryPolicy.from_config(self.config.retry),
            timeout=client_config.timeout,
            headers=headers,
            rng=rng,
        )
        self.decoder = BoundedResponseDecoder(self.config.limits.max_response_size)

        logger.info(f"CivitAI client initialized for {self.base_url}")

    @classmethod
    def from_config_file(cls, config_path: Optional[Union[str, Path]] = None, **kwargs: Any) -> "CivitAIClient":
        """Create a client from .civitai.yml and CIVITAI_* environment variables

        Raises:
            ConfigurationError: If configuration validation fails
        """
        return cls(ConfigManager(config_path).config, **kwargs)

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "CivitAIClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Plumbing

    def build_url(self, path: str, query: Optional[Dict[str, str]] = None) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        params = sorted((k, v) for k, v in (query or {}).items() if v != "")
        if params:
            url += "?" + urlencode(params)
        return url

    def _get(
        self,
        path: str,
        target: Any,
        query: Optional[Dict[str, str]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Any:
        response = self.executor.execute("GET", self.build_url(path, query), cancel=cancel)
        return self.decoder.decode(response, target)

    # Models

    def search_models(
        self, params: Optional[SearchParams] = None, *, cancel: Optional[CancelToken] = None
    ) -> Tuple[List[Model], Optional[Metadata]]:
        """Search models

        Args:
            params: Search filters (empty search when None)
            cancel: Cancel token / deadline

        Returns:
            Tuple of (models, pagination metadata)

        Raises:
            InvalidParameterError: If params are out of bounds
        """
        params = params or SearchParams()
        params.validate()
        page = self._get("models", Page[Model], params.to_query(), cancel)
        return page.items, page.metadata

    def get_model(self, model_id: int, *, cancel: Optional[CancelToken] = None) -> Model:
        validate_model_id(model_id)
        return self._get(f"models/{model_id}", Model, cancel=cancel)

    def get_model_versions_by_model_id(
        self, model_id: int, *, cancel: Optional[CancelToken] = None
    ) -> List[ModelVersion]:
        validate_model_id(model_id)
        return self._get(f"models/{model_id}/versions", List[ModelVersion], cancel=cancel)

    # Model versions

    def get_model_version(self, version_id: int, *, cancel: Optional[CancelToken] = None) -> ModelVersion:
        validate_version_id(version_id)
        return self._get(f"model-versions/{version_id}", ModelVersion, cancel=cancel)

    def get_model_version_by_hash(
        self, file_hash: str, *, cancel: Optional[CancelToken] = None
    ) -> ModelVersionByHash:
        """Look up a model version by file hash (AutoV1, AutoV2, SHA256, CRC32 or Blake3)"""
        validate_hash(file_hash)
        return self._get(f"model-versions/by-hash/{quote(file_hash)}", ModelVersionByHash, cancel=cancel)

    # Images, creators, tags

    def get_images(
        self, params: Optional[ImageParams] = None, *, cancel: Optional[CancelToken] = None
    ) -> Tuple[List[ImageItem], Optional[Metadata]]:
        params = params or ImageParams()
        params.validate()
        page = self._get("images", Page[ImageItem], params.to_query(), cancel)
        return page.items, page.metadata

    def get_creators(
        self, params: Optional[CreatorParams] = None, *, cancel: Optional[CancelToken] = None
    ) -> Tuple[List[Creator], Optional[Metadata]]:
        params = params or CreatorParams()
        params.validate()
        page = self._get("creators", Page[Creator], params.to_query(), cancel)
        return page.items, page.metadata

    def get_tags(
        self, params: Optional[TagParams] = None, *, cancel: Optional[CancelToken] = None
    ) -> Tuple[List[Tag], Optional[Metadata]]:
        params = params or TagParams()
        params.validate()
        page = self._get("tags", Page[Tag], params.to_query(), cancel)
        return page.items, page.metadata

    # Health

    def health(self, *, cancel: Optional[CancelToken] = None) -> None:
        """Check the API is reachable

        There is no dedicated health endpoint, so this fetches one model and
        requires a plain 200 OK.

        Raises:
            APIError: If the API answers with any status other than 200
            CivitAIError: If the request itself fails
        """
        response = self.executor.execute("GET", self.build_url("models", {"limit": "1"}), cancel=cancel)
        status = response.status_code
        response.close()
        if status != 200:
            raise APIError(status, f"API health check failed with status {status}")

    def is_working(self, *, cancel: Optional[CancelToken] = None) -> bool:
        try:
            self.health(cancel=cancel)
        except CivitAIError as e:
            logger.debug(f"Health check failed: {e}")
            return False
        return True

    # AIR lookups

    def get_model_by_air(self, air: Union[AIR, str], *, cancel: Optional[CancelToken] = None) -> Model:
        """Fetch the model an AIR points at

        Raises:
            InvalidParameterError: If the AIR is not a CivitAI resource or its ID is not numeric
        """
        air = self._civitai_air(air)
        try:
            model_id = air.model_id()
        except AIRError as e:
            raise InvalidParameterError(f"failed to extract model ID from AIR: {e}") from e
        return self.get_model(model_id, cancel=cancel)

    def get_model_version_by_air(
        self, air: Union[AIR, str], *, cancel: Optional[CancelToken] = None
    ) -> ModelVersion:
        """Fetch the model version a version-specific AIR points at

        Raises:
            InvalidParameterError: If the AIR is not a CivitAI resource or has no numeric version
        """
        air = self._civitai_air(air)
        if not air.is_version_specific():
            raise InvalidParameterError("AIR must specify a version to retrieve model version")
        try:
            version_id = air.version_id()
        except AIRError as e:
            raise InvalidParameterError(f"failed to extract version ID from AIR: {e}") from e
        return self.get_model_version(version_id, cancel=cancel)

    def search_models_by_air_type(
        self,
        air_type: Union[AIRType, str],
        params: Optional[SearchParams] = None,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> Tuple[List[Model], Optional[Metadata]]:
        """Search models restricted to the CivitAI model type matching an AIR type"""
        model_type = AIR(type=air_type).to_model_type()
        params = params or SearchParams()
        types = list(params.types)
        if model_type not in [getattr(t, "value", t) for t in types]:
            types.append(model_type)
        return self.search_models(dataclasses.replace(params, types=types), cancel=cancel)

    def _civitai_air(self, air: Union[AIR, str, None]) -> AIR:
        if air is None:
            raise InvalidParameterError("AIR cannot be None")
        if isinstance(air, str):
            try:
                air = parse_air(air)
            except AIRError as e:
                raise InvalidParameterError(str(e)) from e
        if not air.is_civitai():
            raise InvalidParameterError(f"AIR source '{air.source}' is not supported by CivitAI client")
        return air

    # Shortcuts

    def quick_search(self, query: str, limit: int = 0, *, cancel: Optional[CancelToken] = None) -> List[Model]:
        models, _ = self.search_models(SearchParams(query=query, limit=limit), cancel=cancel)
        return models

    def get_popular_models(self, limit: int = 0, *, cancel: Optional[CancelToken] = None) -> List[Model]:
        models, _ = self.search_models(SearchParams(sort=SortType.MOST_DOWNLOADED, limit=limit), cancel=cancel)
        return models

    def get_newest_models(self, limit: int = 0, *, cancel: Optional[CancelToken] = None) -> List[Model]:
        models, _ = self.search_models(SearchParams(sort=SortType.NEWEST, limit=limit), cancel=cancel)
        return models

    def get_safe_images(self, limit: int = 0, *, cancel: Optional[CancelToken] = None) -> List[ImageItem]:
        images, _ = self.get_images(ImageParams(nsfw=NSFWLevel.NONE, limit=limit), cancel=cancel)
        return images
