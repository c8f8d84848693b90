"""Conversion of catalog models and versions into AIR identifiers"""

from typing import Optional

from civitai_sdk.domain.air import AIR, AIREcosystem, AIRType
from civitai_sdk.domain.models.catalog import Model, ModelType, ModelVersion

# Lower-cased tag -> ecosystem; when several tags match, the last one wins
_ECOSYSTEM_TAGS = {
    "sd 1.5": AIREcosystem.SD1,
    "stable diffusion 1.5": AIREcosystem.SD1,
    "sd 2.0": AIREcosystem.SD2,
    "sd 2.1": AIREcosystem.SD2,
    "stable diffusion 2": AIREcosystem.SD2,
    "flux": AIREcosystem.FLUX,
    "flux.1": AIREcosystem.FLUX,
}

_AIR_TYPES = {
    ModelType.CHECKPOINT.value: AIRType.MODEL,
    ModelType.LORA.value: AIRType.LORA,
    ModelType.TEXTUAL_INVERSION.value: AIRType.EMBEDDING,
    ModelType.VAE.value: AIRType.VAE,
    ModelType.CONTROLNET.value: AIRType.CONTROL,
}

# Checked in order against the lower-cased primary file name
_FILE_NAME_TYPES = (
    ("lora", AIRType.LORA),
    ("vae", AIRType.VAE),
    ("embedding", AIRType.EMBEDDING),
)

_FILE_FORMATS = (
    (".safetensors", "safetensors"),
    (".ckpt", "ckpt"),
)


def infer_ecosystem(model: Model) -> str:
    """Guess the ecosystem from the model tags, defaulting to SDXL"""
    ecosystem = AIREcosystem.SDXL
    for tag in model.tags:
        ecosystem = _ECOSYSTEM_TAGS.get(tag.lower(), ecosystem)
    return ecosystem.value


def convert_model_to_air(model: Model, ecosystem: str = "", version_id: Optional[int] = None) -> AIR:
    """Build the AIR of a CivitAI model

    Args:
        model: Model returned by the API
        ecosystem: Target ecosystem (inferred from tags when empty)
        version_id: Optional version to pin

    Returns:
        AIR with source ``civitai``; not validated
    """
    air = AIR.for_civitai_model(ecosystem or infer_ecosystem(model), model.id, version_id)
    air.type = _AIR_TYPES.get(model.type, AIRType.MODEL).value
    return air


def convert_version_to_air(version: ModelVersion, ecosystem: str = "") -> AIR:
    """Build the AIR of a CivitAI model version

    The resource type and format are guessed from the first file name.
    """
    air = AIR.for_civitai_model(ecosystem or AIREcosystem.SDXL, version.model_id, version.id)
    if not version.files:
        return air

    name = version.files[0].name.lower()
    air.type = AIRType.MODEL.value
    for marker, air_type in _FILE_NAME_TYPES:
        if marker in name:
            air.type = air_type.value
            break
    for suffix, file_format in _FILE_FORMATS:
        if name.endswith(suffix):
            air.format = file_format
            break
    return air
