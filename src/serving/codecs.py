# ==============================================================================
# Payload Codecs
# ==============================================================================
#
# Decode request payloads and encode pipeline outputs per DataFormat.
#
# Input Formats:
#   - NUMPY: multipart form, one field per input tensor holding .npy bytes
#   - JSON: a JSON object, or a list of objects (batch of records)
#   - ND4J: Java binary serde, not decodable here (UnsupportedFormatError)
#
# Output Formats:
#   - JSON: {name: nested list}
#   - NUMPY: {name: {"dtype", "shape", "data": base64 of .npy bytes}}
#   Transform step outputs (JSON records) are returned as-is.
#
# ==============================================================================
"""Request decoding and response encoding per data format."""

import base64
import io
import json
from typing import Any, Dict, Mapping

import numpy as np

from src.errors import UnsupportedFormatError
from src.pipeline.executor import Payload
from src.pipeline.schemas import DataFormat
from src.serving.config import SERVING_SETTINGS


def ndarray_to_npy_bytes(array: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    np.save(buffer, np.asarray(array), allow_pickle=False)
    return buffer.getvalue()


def npy_bytes_to_ndarray(data: bytes) -> np.ndarray:
    try:
        return np.load(io.BytesIO(data), allow_pickle=False)
    except (ValueError, OSError, EOFError) as e:
        raise ValueError(f"Not a valid .npy payload: {e}") from e


def decode_numpy_fields(fields: Mapping[str, bytes]) -> Dict[str, np.ndarray]:
    """Decode multipart fields (tensor name -> .npy bytes)."""
    if not fields:
        raise ValueError("No tensor fields in multipart request")

    arrays = {}
    for name, data in fields.items():
        if len(data) > SERVING_SETTINGS.max_upload_bytes:
            raise ValueError(
                f"Field '{name}' is {len(data)} bytes, "
                f"limit is {SERVING_SETTINGS.max_upload_bytes}"
            )
        arrays[name] = npy_bytes_to_ndarray(data)
    return arrays


def decode_json_body(body: bytes | str) -> Payload:
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON body: {e}") from e

    if isinstance(payload, list):
        if not payload:
            raise ValueError("Empty record list")
        if len(payload) > SERVING_SETTINGS.request_max_length:
            raise ValueError(
                f"Batch of {len(payload)} records exceeds "
                f"request_max_length={SERVING_SETTINGS.request_max_length}"
            )
        if not all(isinstance(record, dict) for record in payload):
            raise ValueError("Every record in a JSON batch must be an object")
        return payload
    if isinstance(payload, dict):
        return payload
    raise ValueError(f"Expected a JSON object or list, got {type(payload).__name__}")


def ensure_decodable(data_format: DataFormat) -> None:
    if data_format == DataFormat.ND4J:
        raise UnsupportedFormatError(
            "ND4J binary payloads cannot be decoded by this server",
            suggestions=["Send .npy files to /raw/numpy instead"],
        )


def _encode_array(array: np.ndarray, data_format: DataFormat) -> Any:
    if data_format == DataFormat.NUMPY:
        return {
            "dtype": str(array.dtype),
            "shape": list(array.shape),
            "data": base64.b64encode(ndarray_to_npy_bytes(array)).decode("ascii"),
        }
    return array.tolist()


def encode_outputs(outputs: Payload, data_format: DataFormat) -> Any:
    """Make pipeline outputs JSON-serializable."""
    if data_format == DataFormat.ND4J:
        raise UnsupportedFormatError(
            "ND4J binary responses cannot be produced by this server",
            suggestions=["Set outputDataFormat to NUMPY or JSON"],
        )

    def encode_value(value: Any) -> Any:
        if isinstance(value, np.ndarray):
            return _encode_array(value, data_format)
        if isinstance(value, np.generic):
            return value.item()
        return value

    if isinstance(outputs, list):
        return [{k: encode_value(v) for k, v in record.items()} for record in outputs]
    return {k: encode_value(v) for k, v in outputs.items()}


def decode_numpy_output(encoded: Mapping[str, Any]) -> np.ndarray:
    """Inverse of the NUMPY output encoding, for clients."""
    return npy_bytes_to_ndarray(base64.b64decode(encoded["data"]))
