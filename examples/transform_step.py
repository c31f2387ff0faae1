"""Serve a transform step that appends "two" to a string column.

Builds the configuration, writes it to config.json, starts the server and
POSTs {"first": "value"} to /raw/json. Expected output: {"first": "valuetwo"}

    python examples/transform_step.py
"""

import argparse
import sys

from src.harness import ServingHarness
from src.pipeline.assembler import PipelineAssembler
from src.pipeline.schemas import ServingConfig
from src.pipeline.transforms import Schema, TransformProcess
from src.serving.launcher import random_port


def build_configuration(port: int):
    # Define the input and output schemas with one string column
    input_schema = Schema.builder().add_column_string("first").build()
    output_schema = Schema.builder().add_column_string("first").build()

    # Define a transform process that operates on the defined inputs
    transform_process = (
        TransformProcess.builder(input_schema)
        .append_string_column_transform("first", "two")
        .build()
    )

    return (
        PipelineAssembler()
        .transform_step(transform_process, output_schema)
        .serving_config(ServingConfig(http_port=port))
        .build()
    )


def main():
    parser = argparse.ArgumentParser(description="Transform step serving example")
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--config-path", type=str, default="config.json")
    args = parser.parse_args()

    port = args.port or random_port()
    harness = ServingHarness(config_path=args.config_path)
    sys.exit(
        harness.run(
            build_configuration(port),
            validate=lambda client: client.post_json({"first": "value"}),
        )
    )


if __name__ == "__main__":
    main()
