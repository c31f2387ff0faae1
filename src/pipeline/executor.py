"""Run the steps of an InferenceConfiguration in order."""

from pathlib import Path
from typing import Any, Dict, List

import numpy as np

from src._utils.logging import get_logger
from src.pipeline.runners import ModelRunner, create_runner
from src.pipeline.schemas import InferenceConfiguration, ModelStep, TransformStep

logger = get_logger(__name__)

Record = Dict[str, Any]
Payload = Record | List[Record]


class PipelineExecutor:
    """Holds one loaded runner per model step.

    A payload is either a mapping of names to values (tensors or column
    values) or a list of such records. The named outputs of a step become the
    inputs of the next one.
    Relative model paths resolve against base_dir.
    """

    def __init__(
        self, config: InferenceConfiguration, base_dir: str | Path | None = None
    ) -> None:
        self.config = config
        # Raises ConfigurationError for model types without a runner
        self._runners: Dict[int, ModelRunner] = {
            i: create_runner(step.model, base_dir=base_dir)
            for i, step in enumerate(config.steps)
            if isinstance(step, ModelStep)
        }

    @property
    def input_names(self) -> List[str]:
        return self.config.steps[0].input_names

    def load(self) -> None:
        for runner in self._runners.values():
            runner.load()

    def execute(self, payload: Payload) -> Payload:
        for i, step in enumerate(self.config.steps):
            if isinstance(step, TransformStep):
                payload = self._run_transform(step, payload)
            else:
                payload = self._run_model(self._runners[i], payload)
        return payload

    @staticmethod
    def _run_transform(step: TransformStep, payload: Payload) -> Payload:
        def run(record: Record) -> Record:
            if not isinstance(record, dict):
                raise ValueError(
                    f"Transform step expects JSON objects, got {type(record).__name__}"
                )
            transformed = step.transform_process.execute(record)
            return {name: transformed[name] for name in step.output_names}

        if isinstance(payload, list):
            return [run(record) for record in payload]
        return run(payload)

    @staticmethod
    def _run_model(runner: ModelRunner, payload: Payload) -> Dict[str, np.ndarray]:
        if isinstance(payload, list):
            # A batch of JSON records: stack each named input along axis 0
            names = runner.descriptor.input_names
            missing = [n for n in names if any(n not in record for record in payload)]
            if missing:
                raise ValueError(f"Missing model inputs in batch records: {missing}")
            inputs = {n: np.asarray([record[n] for record in payload]) for n in names}
        else:
            inputs = {name: np.asarray(value) for name, value in payload.items()}
        return runner.predict(inputs)
