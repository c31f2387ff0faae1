# ==============================================================================
# Pipeline Assembler
# ==============================================================================
#
# Fluent builder that composes pipeline steps and a serving config into one
# InferenceConfiguration.
#
# Usage:
#   descriptor = model_descriptor(
#       "models/bert_mrpc_frozen.pb",
#       ModelType.TENSORFLOW,
#       input_data_types={"IteratorGetNext:0": TensorDataType.INT32},
#       output_names=["loss/Softmax"],
#   )
#   config = (
#       PipelineAssembler()
#       .serving_config(ServingConfig(http_port=9000))
#       .model_step(descriptor, workers=1)
#       .build()
#   )
#
# Errors:
#   Every validation failure surfaces as ConfigurationError, before any
#   server launch is attempted.
#
# ==============================================================================
"""Build immutable inference configurations."""

from pathlib import Path
from typing import Dict, List, Mapping, Sequence
from urllib.parse import urlparse
from urllib.request import url2pathname

from pydantic import ValidationError

from src._utils.logging import get_logger
from src.errors import ConfigurationError
from src.pipeline.schemas import (
    InferenceConfiguration,
    ModelDescriptor,
    ModelStep,
    ModelType,
    ParallelInferenceConfig,
    PipelineStep,
    ServingConfig,
    TensorDataType,
    TransformStep,
)
from src.pipeline.transforms import Schema, TransformProcess

logger = get_logger(__name__)


def is_model_uri(path: str) -> bool:
    """True for URIs such as models:/name/1 or runs:/id/model (not local paths)."""
    scheme = urlparse(path).scheme
    # Single letters are Windows drive letters
    return len(scheme) > 1


def artifact_location(
    loading_path: str | Path,
    model_type: ModelType,
    base_dir: str | Path | None = None,
) -> Path | None:
    """Local file behind a model loading path, or None for an MLflow model URI.

    file:// URIs map to their local path. Relative paths resolve against
    base_dir, or the working directory when base_dir is None.

    Raises:
        ConfigurationError: For any other URI scheme on a non-MLflow model
    """
    path = str(loading_path)
    if is_model_uri(path):
        parsed = urlparse(path)
        if model_type == ModelType.MLFLOW:
            return None
        if parsed.scheme != "file":
            raise ConfigurationError(
                f"{model_type.value} models must be local files, got {path}",
                suggestions=[
                    "Download the model first (see src.artifacts.ensure_artifact)",
                    "Use a plain path or a file:// URI",
                ],
            )
        local = Path(url2pathname(parsed.path))
    else:
        local = Path(path).expanduser()

    if base_dir is not None and not local.is_absolute():
        local = Path(base_dir) / local
    return local


def model_descriptor(
    loading_path: str | Path,
    model_type: ModelType,
    input_data_types: Mapping[str, TensorDataType],
    output_names: Sequence[str],
    input_names: Sequence[str] | None = None,
) -> ModelDescriptor:
    """Build a ModelDescriptor, checking the model artifact exists.

    The loading path is stored as given. Relative paths are resolved against
    the working directory here and by the server at load time.

    Args:
        loading_path: Model file on disk, a file:// URI, or an MLflow model URI
        model_type: Framework the model was saved with
        input_data_types: Input tensor name -> scalar type
        output_names: Ordered output tensor names
        input_names: Ordered input names; defaults to the keys of input_data_types

    Raises:
        ConfigurationError: If the artifact is missing or the fields are invalid
    """
    path = str(loading_path)
    local = artifact_location(path, model_type)
    if local is not None and not local.exists():
        raise ConfigurationError(
            f"Model artifact not found: {local}",
            suggestions=[
                "Download the model first (see src.artifacts.ensure_artifact)",
                "Check the path is relative to the working directory",
            ],
        )

    names: List[str] = list(input_names) if input_names is not None else list(input_data_types)
    types: Dict[str, TensorDataType] = dict(input_data_types)

    try:
        return ModelDescriptor(
            model_loading_path=path,
            model_type=model_type,
            input_names=names,
            input_data_types=types,
            output_names=list(output_names),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid model descriptor: {e}") from e


class PipelineAssembler:
    """Collects steps and a serving config, then builds the root document."""

    def __init__(self) -> None:
        self._steps: List[PipelineStep] = []
        self._serving_config: ServingConfig | None = None

    def serving_config(self, config: ServingConfig) -> "PipelineAssembler":
        self._serving_config = config
        return self

    def step(self, step: PipelineStep) -> "PipelineAssembler":
        self._steps.append(step)
        return self

    def model_step(
        self, descriptor: ModelDescriptor, workers: int = 1
    ) -> "PipelineAssembler":
        try:
            step = ModelStep(
                model=descriptor,
                parallel_inference_config=ParallelInferenceConfig(workers=workers),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid model step: {e}") from e
        return self.step(step)

    def transform_step(
        self, transform_process: TransformProcess, output_schema: Schema
    ) -> "PipelineAssembler":
        try:
            step = TransformStep(
                transform_process=transform_process, output_schema=output_schema
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid transform step: {e}") from e
        return self.step(step)

    def build(self) -> InferenceConfiguration:
        if self._serving_config is None:
            raise ConfigurationError(
                "No serving config set",
                suggestions=["Call .serving_config(ServingConfig(http_port=...))"],
            )
        if not self._steps:
            raise ConfigurationError(
                "Pipeline has no steps",
                suggestions=["Add a step with .model_step(...) or .transform_step(...)"],
            )

        try:
            config = InferenceConfiguration(
                steps=list(self._steps), serving_config=self._serving_config
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid inference configuration: {e}") from e

        logger.info(
            f"🧩 Assembled pipeline with {len(config.steps)} step(s) "
            f"on port {config.serving_config.http_port}"
        )
        return config
