"""Serve a frozen BERT (MRPC) TensorFlow graph as a model step.

The server keeps running until interrupted. With --validate, one request
with random token ids is sent to /raw/numpy once the server is ready and the
process exits afterwards.

    python examples/tensorflow_bert.py --model-path bert/bert_mrpc_frozen.pb
"""

import argparse
import sys
import tempfile
from pathlib import Path

from src.artifacts import ensure_artifact
from src.client import random_int_array, write_ndarray
from src.harness import ServingHarness
from src.pipeline.assembler import PipelineAssembler, model_descriptor
from src.pipeline.schemas import DataFormat, ModelType, ServingConfig, TensorDataType
from src.serving.launcher import random_port

INPUT_DATA_TYPES = {
    "IteratorGetNext:0": TensorDataType.INT32,  # input ids
    "IteratorGetNext:1": TensorDataType.INT32,  # input mask
    "IteratorGetNext:4": TensorDataType.INT32,  # segment ids
}
OUTPUT_NAMES = ["loss/Softmax"]
SEQUENCE_SHAPE = (4, 128)


def build_configuration(model_path, port: int):
    descriptor = model_descriptor(
        model_path,
        ModelType.TENSORFLOW,
        input_data_types=INPUT_DATA_TYPES,
        output_names=OUTPUT_NAMES,
    )

    return (
        PipelineAssembler()
        .model_step(descriptor, workers=1)
        .serving_config(
            ServingConfig(
                http_port=port,
                input_data_format=DataFormat.NUMPY,
                output_data_format=DataFormat.NUMPY,
            )
        )
        .build()
    )


def send_random_tokens(client) -> int:
    with tempfile.TemporaryDirectory(prefix="bert-sample-") as tmp:
        sample_dir = Path(tmp)
        files = {}
        for i, name in enumerate(INPUT_DATA_TYPES):
            high = 2 if i > 0 else 30522  # masks/segments are 0/1, ids span the vocab
            files[name] = write_ndarray(
                random_int_array(SEQUENCE_SHAPE, high, dtype="int32"),
                sample_dir / f"input_{i}.npy",
            )
        return client.post_files(DataFormat.NUMPY, files)


def main():
    parser = argparse.ArgumentParser(description="TensorFlow BERT model step example")
    parser.add_argument("--model-path", type=str, default="bert/bert_mrpc_frozen.pb")
    parser.add_argument("--model-url", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--config-path", type=str, default="config.json")
    parser.add_argument("--validate", action="store_true")
    args = parser.parse_args()

    port = args.port or random_port()
    model_path = ensure_artifact(args.model_path, args.model_url)

    harness = ServingHarness(config_path=args.config_path)
    sys.exit(
        harness.run(
            build_configuration(model_path, port),
            validate=send_random_tokens if args.validate else None,
        )
    )


if __name__ == "__main__":
    main()
