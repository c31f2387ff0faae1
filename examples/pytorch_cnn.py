"""Serve a TorchScript CNN as a model step and send it one random image.

The image tensor is written as a .npy file and uploaded to /raw/numpy under
the input name "image_array". The launch options mirror a single-threaded,
non-HA server whose port is passed explicitly.

    python examples/pytorch_cnn.py --model-path models/simple_cnn.pt
"""

import argparse
import sys

from src.artifacts import ensure_artifact
from src.client import random_int_array, write_ndarray
from src.harness import ServingHarness
from src.pipeline.assembler import PipelineAssembler, model_descriptor
from src.pipeline.schemas import DataFormat, ModelType, ServingConfig, TensorDataType
from src.serving.launcher import DEFAULT_PROCESSOR_CLASS, LaunchOptions, random_port

IMAGE_SHAPE = (1, 3, 244, 244)


def build_configuration(model_path, port: int):
    # Set the tensor input data types; input names follow this order
    input_data_types = {"image_array": TensorDataType.FLOAT}

    descriptor = model_descriptor(
        model_path,
        ModelType.PYTORCH,
        input_data_types=input_data_types,
        output_names=["output"],
    )

    return (
        PipelineAssembler()
        .model_step(descriptor)
        .serving_config(
            ServingConfig(
                http_port=port,
                input_data_format=DataFormat.NUMPY,
                output_data_format=DataFormat.JSON,
            )
        )
        .build()
    )


def main():
    parser = argparse.ArgumentParser(description="TorchScript model step example")
    parser.add_argument("--model-path", type=str, default="simple_cnn.pt")
    parser.add_argument("--model-url", type=str, default=None)
    parser.add_argument("--sample-path", type=str, default="data/test-image.npy")
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--config-path", type=str, default="config.json")
    args = parser.parse_args()

    port = args.port or random_port()
    model_path = ensure_artifact(args.model_path, args.model_url)
    config = build_configuration(model_path, port)

    image = random_int_array(IMAGE_SHAPE, 255)
    sample = write_ndarray(image, args.sample_path)

    options = LaunchOptions(
        config_store_type="file",
        ha=False,
        multi_threaded=False,
        config_port=port,
        processor_class=DEFAULT_PROCESSOR_CLASS,
    )
    harness = ServingHarness(config_path=args.config_path, launch_options=options)
    sys.exit(
        harness.run(
            config,
            validate=lambda client: client.post_files(
                DataFormat.NUMPY, {"image_array": sample}
            ),
        )
    )


if __name__ == "__main__":
    main()
