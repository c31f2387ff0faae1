import json
import os
from pathlib import Path

import numpy as np
import pytest
from pydantic import ValidationError

from src.errors import ConfigurationError, PersistenceError
from src.pipeline.assembler import (
    PipelineAssembler,
    artifact_location,
    is_model_uri,
    model_descriptor,
)
from src.pipeline.persistence import load_configuration, save_configuration
from src.pipeline.schemas import (
    DataFormat,
    InferenceConfiguration,
    ModelDescriptor,
    ModelStep,
    ModelType,
    ServingConfig,
    TensorDataType,
    TransformStep,
)
from src.pipeline.transforms import Schema


class TestModelDescriptor:
    def test_input_names_follow_declared_types(self, descriptor):
        assert descriptor.input_names == ["a", "b"]
        assert descriptor.input_data_types["b"] == TensorDataType.INT32

    def test_types_must_name_known_inputs(self, model_file):
        with pytest.raises(ConfigurationError, match="missing from input_names"):
            model_descriptor(
                model_file,
                ModelType.TENSORFLOW,
                input_data_types={"a": TensorDataType.FLOAT},
                output_names=["out"],
                input_names=["b"],
            )

    def test_is_frozen(self, descriptor):
        with pytest.raises(ValidationError):
            descriptor.output_names = ["other"]

    def test_missing_artifact(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Model artifact not found"):
            model_descriptor(
                tmp_path / "missing.pb",
                ModelType.TENSORFLOW,
                input_data_types={"a": TensorDataType.FLOAT},
                output_names=["out"],
            )

    @pytest.mark.parametrize(
        "path", ["file:///nonexistent/model.pb", "s3://bucket/missing.pb"]
    )
    def test_uris_are_checked_for_local_model_types(self, path):
        with pytest.raises(ConfigurationError):
            model_descriptor(
                path,
                ModelType.TENSORFLOW,
                input_data_types={"a": TensorDataType.FLOAT},
                output_names=["out"],
            )

    def test_file_uri_to_existing_model(self, model_file):
        descriptor = model_descriptor(
            model_file.as_uri(),
            ModelType.PYTORCH,
            input_data_types={"a": TensorDataType.FLOAT},
            output_names=["out"],
        )
        assert descriptor.model_loading_path == model_file.as_uri()

    def test_loading_path_is_kept_as_given(self, model_file, monkeypatch):
        monkeypatch.chdir(model_file.parent)
        descriptor = model_descriptor(
            "model.pt",
            ModelType.PYTORCH,
            input_data_types={"a": TensorDataType.FLOAT},
            output_names=["out"],
        )
        assert descriptor.model_loading_path == "model.pt"

    def test_artifact_location(self, tmp_path):
        assert artifact_location("models:/m/1", ModelType.MLFLOW) is None
        assert artifact_location("m.pt", ModelType.PYTORCH, tmp_path) == tmp_path / "m.pt"
        assert artifact_location("/abs/m.pt", ModelType.PYTORCH, tmp_path) == Path("/abs/m.pt")
        with pytest.raises(ConfigurationError, match="must be local files"):
            artifact_location("s3://bucket/m.pt", ModelType.PYTORCH)

    def test_model_uris_are_not_checked_on_disk(self):
        descriptor = model_descriptor(
            "models:/classifier/1",
            ModelType.MLFLOW,
            input_data_types={"x": TensorDataType.FLOAT},
            output_names=["y"],
        )
        assert descriptor.model_loading_path == "models:/classifier/1"

    @pytest.mark.parametrize(
        "path, expected",
        [("models:/m/1", True), ("runs:/abc/model", True), ("C:/m.pb", False), ("m.pb", False)],
    )
    def test_is_model_uri(self, path, expected):
        assert is_model_uri(path) is expected

    def test_tensor_dtype_mapping(self):
        assert TensorDataType.INT32.numpy_dtype == np.int32
        assert TensorDataType.FLOAT.numpy_dtype == np.float32


class TestServingConfig:
    @pytest.mark.parametrize("port", [0, 65536, -1])
    def test_port_range(self, port):
        with pytest.raises(ValidationError):
            ServingConfig(http_port=port)

    def test_defaults(self):
        config = ServingConfig(http_port=1)
        assert config.input_data_format == DataFormat.NUMPY
        assert config.output_data_format == DataFormat.NUMPY

    def test_route_format(self):
        assert DataFormat.from_route("json") == DataFormat.JSON
        with pytest.raises(ValueError, match="Unknown data format"):
            DataFormat.from_route("xml")


class TestPipelineAssembler:
    def test_build_requires_serving_config(self, descriptor):
        with pytest.raises(ConfigurationError, match="No serving config"):
            PipelineAssembler().model_step(descriptor).build()

    def test_build_requires_steps(self):
        with pytest.raises(ConfigurationError, match="no steps"):
            PipelineAssembler().serving_config(ServingConfig(http_port=9000)).build()

    def test_workers_must_be_positive(self, descriptor):
        with pytest.raises(ConfigurationError):
            PipelineAssembler().model_step(descriptor, workers=0)

    def test_output_schema_must_be_produced(self, transform_process):
        output_schema = Schema.builder().add_column_string("second").build()
        with pytest.raises(ConfigurationError, match="not produced"):
            PipelineAssembler().transform_step(transform_process, output_schema)

    def test_steps_keep_order(self, descriptor, transform_process):
        output_schema = Schema.builder().add_column_string("first").build()
        config = (
            PipelineAssembler()
            .serving_config(ServingConfig(http_port=9000))
            .transform_step(transform_process, output_schema)
            .model_step(descriptor, workers=3)
            .build()
        )
        assert [type(s) for s in config.steps] == [TransformStep, ModelStep]
        assert config.workers == 3


class TestPersistence:
    def test_round_trip(self, model_config, tmp_path):
        path = save_configuration(model_config, tmp_path / "config.json")
        loaded = load_configuration(path)

        assert loaded == model_config
        original = model_config.steps[0].model
        restored = loaded.steps[0].model
        assert restored.model_loading_path == original.model_loading_path
        assert restored.input_names == original.input_names
        assert restored.output_names == original.output_names

    def test_relative_model_path_round_trip(self, model_file, tmp_path, monkeypatch):
        monkeypatch.chdir(model_file.parent)
        descriptor = model_descriptor(
            "model.pt",
            ModelType.PYTORCH,
            input_data_types={"a": TensorDataType.FLOAT},
            output_names=["out"],
        )
        config = (
            PipelineAssembler()
            .model_step(descriptor)
            .serving_config(ServingConfig(http_port=9000))
            .build()
        )
        loaded = load_configuration(save_configuration(config, tmp_path / "config.json"))

        assert loaded.steps[0].model.model_loading_path == "model.pt"

    def test_document_uses_camel_case(self, model_config, tmp_path):
        path = save_configuration(model_config, tmp_path / "config.json")
        document = json.loads(path.read_text())

        assert document["servingConfig"]["httpPort"] == 40001
        step = document["steps"][0]
        assert step["type"] == "model"
        assert step["model"]["modelType"] == "PYTORCH"
        assert step["model"]["inputNames"] == ["a", "b"]
        assert step["parallelInferenceConfig"]["workers"] == 2

    def test_transform_round_trip(self, transform_config, tmp_path):
        path = save_configuration(transform_config, tmp_path / "nested" / "config.json")
        loaded = load_configuration(path)
        assert isinstance(loaded.steps[0], TransformStep)
        assert loaded.steps[0].transform_process.execute({"first": "v"}) == {"first": "vtwo"}

    def test_overwrites_existing_file(self, model_config, transform_config, tmp_path):
        path = tmp_path / "config.json"
        save_configuration(model_config, path)
        save_configuration(transform_config, path)
        assert load_configuration(path) == transform_config

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores file permissions")
    def test_write_failure(self, model_config, tmp_path):
        readonly = tmp_path / "readonly"
        readonly.mkdir()
        readonly.chmod(0o500)
        with pytest.raises(PersistenceError) as excinfo:
            save_configuration(model_config, readonly / "config.json")
        assert isinstance(excinfo.value, OSError)

    def test_write_to_directory_fails(self, model_config, tmp_path):
        with pytest.raises(OSError):
            save_configuration(model_config, tmp_path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(PersistenceError):
            load_configuration(tmp_path / "nope.json")

    def test_invalid_document(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"steps": [], "servingConfig": {"httpPort": 1}}))
        with pytest.raises(ConfigurationError):
            load_configuration(path)

    def test_to_json_from_json(self, model_config):
        assert InferenceConfiguration.from_json(model_config.to_json()) == model_config

    def test_descriptor_validation_in_documents(self):
        with pytest.raises(ValidationError):
            ModelDescriptor(
                model_loading_path="m.pb",
                model_type=ModelType.TENSORFLOW,
                input_names=["a", "a"],
                output_names=["out"],
            )
