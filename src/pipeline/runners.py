# ==============================================================================
# Model Runners
# ==============================================================================
#
# Load a model described by a ModelDescriptor and run it on named numpy inputs.
#
# Supported Model Types:
#   - TENSORFLOW: Frozen GraphDef (.pb), run through tf.compat.v1 sessions
#   - PYTORCH: TorchScript archive (torch.jit.save), run on CUDA when available
#   - MLFLOW: Any MLflow model URI, loaded as a pyfunc
#
# MULTI_LAYER_NETWORK and COMPUTATION_GRAPH (DL4J archives) have no Python
# runtime and are rejected with ConfigurationError.
#
# TensorFlow is an optional extra (pip install .[tensorflow]) and is imported
# when a TENSORFLOW model is loaded.
#
# ==============================================================================
"""Model runners keyed by ModelType."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Type

import mlflow
import numpy as np
import torch

from src._utils.logging import get_logger
from src.errors import ConfigurationError
from src.pipeline.assembler import artifact_location
from src.pipeline.schemas import ModelDescriptor, ModelType, TensorDataType

logger = get_logger(__name__)

_RUNNERS: Dict[ModelType, Type["ModelRunner"]] = {}


def register_runner(model_type: ModelType) -> Callable[[Type["ModelRunner"]], Type["ModelRunner"]]:
    def decorator(cls: Type["ModelRunner"]) -> Type["ModelRunner"]:
        _RUNNERS[model_type] = cls
        return cls

    return decorator


def supported_model_types() -> List[ModelType]:
    return list(_RUNNERS)


def create_runner(
    descriptor: ModelDescriptor, base_dir: str | Path | None = None
) -> "ModelRunner":
    runner_cls = _RUNNERS.get(descriptor.model_type)
    if runner_cls is None:
        raise ConfigurationError(
            f"No runner for model type {descriptor.model_type.value}",
            suggestions=[
                f"Export the model to one of: {[t.value for t in supported_model_types()]}",
            ],
            context={"model_loading_path": descriptor.model_loading_path},
        )
    return runner_cls(descriptor, base_dir=base_dir)


class ModelRunner(ABC):
    def __init__(
        self, descriptor: ModelDescriptor, base_dir: str | Path | None = None
    ) -> None:
        self.descriptor = descriptor
        self.base_dir = base_dir
        self.loaded = False

    @property
    def loading_path(self) -> str:
        """Model location with relative paths resolved against base_dir."""
        local = artifact_location(
            self.descriptor.model_loading_path, self.descriptor.model_type, self.base_dir
        )
        return self.descriptor.model_loading_path if local is None else str(local)

    @abstractmethod
    def _load(self) -> None: ...

    @abstractmethod
    def _predict(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]: ...

    def load(self) -> None:
        logger.info(
            f"📦 Loading {self.descriptor.model_type.value} model from: "
            f"{self.loading_path}"
        )
        self._load()
        self.loaded = True
        logger.info("✅ Model loaded successfully")

    def predict(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """Run the model on named inputs, returning named outputs.

        Raises:
            ValueError: If an input is missing or the model output does not
                match the declared output names
        """
        if not self.loaded:
            raise RuntimeError("Model not loaded, call load() first")

        missing = [n for n in self.descriptor.input_names if n not in inputs]
        if missing:
            raise ValueError(f"Missing model inputs: {missing}")

        outputs = self._predict(self._cast_inputs(inputs))

        missing = [n for n in self.descriptor.output_names if n not in outputs]
        if missing:
            raise ValueError(f"Model did not produce outputs: {missing}")
        return {n: outputs[n] for n in self.descriptor.output_names}

    def _cast_inputs(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        cast = {}
        for name in self.descriptor.input_names:
            arr = np.asarray(inputs[name])
            declared = self.descriptor.input_data_types.get(name)
            if declared == TensorDataType.STRING:
                if arr.dtype.kind != "U":
                    arr = arr.astype(str)
            elif declared is not None and arr.dtype != declared.numpy_dtype:
                arr = arr.astype(declared.numpy_dtype)
            cast[name] = arr
        return cast

    def _outputs_from_sequence(self, values) -> Dict[str, np.ndarray]:
        names = self.descriptor.output_names
        if len(values) != len(names):
            raise ValueError(
                f"Model returned {len(values)} output(s), expected {len(names)} {names}"
            )
        return {name: np.asarray(value) for name, value in zip(names, values)}


def _graph_tensor_name(name: str) -> str:
    return name if ":" in name else f"{name}:0"


@register_runner(ModelType.TENSORFLOW)
class TensorFlowRunner(ModelRunner):
    """Frozen TensorFlow graph executed through a v1 session."""

    def _load(self) -> None:
        import tensorflow as tf

        graph_def = tf.compat.v1.GraphDef()
        with tf.io.gfile.GFile(self.loading_path, "rb") as f:
            graph_def.ParseFromString(f.read())

        self._graph = tf.Graph()
        with self._graph.as_default():
            tf.compat.v1.import_graph_def(graph_def, name="")
        self._session = tf.compat.v1.Session(graph=self._graph)

    def _predict(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        feed = {_graph_tensor_name(name): value for name, value in inputs.items()}
        fetches = [_graph_tensor_name(name) for name in self.descriptor.output_names]
        return self._outputs_from_sequence(self._session.run(fetches, feed_dict=feed))


@register_runner(ModelType.PYTORCH)
class TorchScriptRunner(ModelRunner):
    """TorchScript archive; inputs are passed positionally in input_names order."""

    def _load(self) -> None:
        self.device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
        self._model = torch.jit.load(
            self.loading_path, map_location=self.device
        )
        self._model.eval()
        logger.info(f"   Device: {self.device}")

    def _predict(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        tensors = [
            torch.from_numpy(np.ascontiguousarray(inputs[name])).to(self.device)
            for name in self.descriptor.input_names
        ]

        with torch.no_grad():
            result = self._model(*tensors)

        if isinstance(result, dict):
            return {k: v.cpu().numpy() for k, v in result.items()}
        if isinstance(result, torch.Tensor):
            result = (result,)
        return self._outputs_from_sequence([t.cpu().numpy() for t in result])


@register_runner(ModelType.MLFLOW)
class MLflowRunner(ModelRunner):
    """MLflow model loaded as a pyfunc from a model URI."""

    def _load(self) -> None:
        self._model = mlflow.pyfunc.load_model(self.loading_path)

    def _predict(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        names = self.descriptor.input_names
        payload = inputs[names[0]] if len(names) == 1 else inputs
        result = self._model.predict(payload)

        if isinstance(result, dict):
            return {k: np.asarray(v) for k, v in result.items()}
        if hasattr(result, "to_numpy"):
            result = result.to_numpy()
        return self._outputs_from_sequence([result])
