# ==============================================================================
# Inference Configuration Schemas
# ==============================================================================
#
# Immutable pydantic models for the inference configuration document.
#
# Schema Overview:
#   - ModelDescriptor: Model loading path, model type, input/output tensor names
#   - ParallelInferenceConfig: Number of inference workers for a model step
#   - ModelStep / TransformStep: The two pipeline step variants
#   - ServingConfig: HTTP port and input/output data formats
#   - InferenceConfiguration: Root document (steps + serving config)
#
# JSON Layout:
#   Attributes are snake_case in Python and camelCase in the persisted JSON
#   (servingConfig, httpPort, modelLoadingPath, inputNames, ...). Steps carry
#   a "type" discriminator ("model" or "transform").
#
# ==============================================================================
"""Schema definitions for the inference configuration document."""

from enum import StrEnum
from typing import Annotated, Dict, List, Literal, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from src.pipeline.transforms import Schema, TransformProcess


class _Frozen(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        protected_namespaces=(),  # allow "model_*" field names
    )


class TensorDataType(StrEnum):
    INT32 = "INT32"
    INT64 = "INT64"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    BOOL = "BOOL"
    STRING = "STRING"

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(_NUMPY_DTYPES[self])


_NUMPY_DTYPES = {
    TensorDataType.INT32: np.int32,
    TensorDataType.INT64: np.int64,
    TensorDataType.FLOAT: np.float32,
    TensorDataType.DOUBLE: np.float64,
    TensorDataType.BOOL: np.bool_,
    TensorDataType.STRING: np.str_,
}


class ModelType(StrEnum):
    TENSORFLOW = "TENSORFLOW"
    MULTI_LAYER_NETWORK = "MULTI_LAYER_NETWORK"
    COMPUTATION_GRAPH = "COMPUTATION_GRAPH"
    PYTORCH = "PYTORCH"
    MLFLOW = "MLFLOW"


class DataFormat(StrEnum):
    NUMPY = "NUMPY"
    JSON = "JSON"
    ND4J = "ND4J"

    @classmethod
    def from_route(cls, value: str) -> "DataFormat":
        """Parse the lower-case route segment used in /raw/{format}."""
        try:
            return cls(value.upper())
        except ValueError:
            raise ValueError(
                f"Unknown data format '{value}'. "
                f"Expected one of {[f.value.lower() for f in cls]}"
            ) from None


# ========== Model Step ========== #
class ModelDescriptor(_Frozen):
    """Describes how to load one model and which tensors it consumes/produces."""

    model_loading_path: str = Field(
        ..., min_length=1, description="Local model file or MLflow model URI"
    )
    model_type: ModelType = Field(..., description="Framework the model was saved with")
    input_names: List[str] = Field(
        ..., min_length=1, description="Ordered input tensor names"
    )
    input_data_types: Dict[str, TensorDataType] = Field(
        default_factory=dict, description="Declared scalar type per input tensor"
    )
    output_names: List[str] = Field(
        ..., min_length=1, description="Ordered output tensor names"
    )

    @model_validator(mode="after")
    def _check_names(self) -> "ModelDescriptor":
        for label, names in (("input", self.input_names), ("output", self.output_names)):
            if len(set(names)) != len(names):
                raise ValueError(f"Duplicate {label} names: {names}")
        unknown = [n for n in self.input_data_types if n not in self.input_names]
        if unknown:
            raise ValueError(
                f"input_data_types declares names missing from input_names: {unknown}"
            )
        return self


class ParallelInferenceConfig(_Frozen):
    workers: int = Field(1, ge=1, description="Number of inference workers")


class ModelStep(_Frozen):
    type: Literal["model"] = "model"
    model: ModelDescriptor
    parallel_inference_config: ParallelInferenceConfig = Field(
        default_factory=ParallelInferenceConfig
    )

    @property
    def input_names(self) -> List[str]:
        return self.model.input_names

    @property
    def output_names(self) -> List[str]:
        return self.model.output_names

    @property
    def workers(self) -> int:
        return self.parallel_inference_config.workers


# ========== Transform Step ========== #
class TransformStep(_Frozen):
    type: Literal["transform"] = "transform"
    transform_process: TransformProcess
    output_schema: Schema

    @model_validator(mode="after")
    def _check_output_schema(self) -> "TransformStep":
        produced = self.transform_process.final_schema
        missing = [
            n for n in self.output_schema.column_names if not produced.has_column(n)
        ]
        if missing:
            raise ValueError(
                f"Output schema columns {missing} are not produced by the transform "
                f"process (produces {produced.column_names})"
            )
        return self

    @property
    def input_schema(self) -> Schema:
        return self.transform_process.initial_schema

    @property
    def input_names(self) -> List[str]:
        return self.input_schema.column_names

    @property
    def output_names(self) -> List[str]:
        return self.output_schema.column_names

    @property
    def workers(self) -> int:
        return 1


PipelineStep = Annotated[Union[ModelStep, TransformStep], Field(discriminator="type")]


# ========== Serving ========== #
class ServingConfig(_Frozen):
    http_port: int = Field(..., ge=1, le=65535, description="Port the server binds")
    listen_host: str = Field("127.0.0.1", description="Interface the server binds")
    input_data_format: DataFormat = Field(
        DataFormat.NUMPY, description="Payload format of the plain /raw route"
    )
    output_data_format: DataFormat = Field(
        DataFormat.NUMPY, description="Encoding of model step outputs"
    )


class InferenceConfiguration(_Frozen):
    """Root document: ordered pipeline steps plus the serving config."""

    steps: List[PipelineStep] = Field(..., min_length=1)
    serving_config: ServingConfig

    @property
    def workers(self) -> int:
        return max(step.workers for step in self.steps)

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)

    @classmethod
    def from_json(cls, document: str | bytes) -> "InferenceConfiguration":
        return cls.model_validate_json(document)
