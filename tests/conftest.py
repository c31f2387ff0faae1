import pytest

from src.pipeline.assembler import PipelineAssembler, model_descriptor
from src.pipeline.schemas import ModelType, ServingConfig, TensorDataType
from src.pipeline.transforms import Schema, TransformProcess


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "model.pt"
    path.write_bytes(b"not a real model")
    return path


@pytest.fixture
def descriptor(model_file):
    return model_descriptor(
        model_file,
        ModelType.PYTORCH,
        input_data_types={"a": TensorDataType.FLOAT, "b": TensorDataType.INT32},
        output_names=["out"],
    )


@pytest.fixture
def transform_process():
    schema = Schema.builder().add_column_string("first").build()
    return (
        TransformProcess.builder(schema)
        .append_string_column_transform("first", "two")
        .build()
    )


@pytest.fixture
def transform_config(transform_process):
    output_schema = Schema.builder().add_column_string("first").build()
    return (
        PipelineAssembler()
        .transform_step(transform_process, output_schema)
        .serving_config(ServingConfig(http_port=40000))
        .build()
    )


@pytest.fixture
def model_config(descriptor):
    return (
        PipelineAssembler()
        .model_step(descriptor, workers=2)
        .serving_config(ServingConfig(http_port=40001))
        .build()
    )
