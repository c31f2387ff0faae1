"""Inference pipeline serving application using Ray Serve + FastAPI."""

from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from ray import serve
from ray.serve import Application
from starlette.datastructures import UploadFile

from src._utils.logging import get_logger
from src.config import BASE_CNFG
from src.errors import UnsupportedFormatError
from src.pipeline.executor import PipelineExecutor
from src.pipeline.persistence import load_configuration
from src.pipeline.schemas import DataFormat, InferenceConfiguration
from src.serving.codecs import (
    decode_json_body,
    decode_numpy_fields,
    encode_outputs,
    ensure_decodable,
)
from src.serving.schemas import (
    APIStatus,
    ErrorResponse,
    HealthResponse,
    PipelineInfo,
    RootResponse,
    StepInfo,
)

logger = get_logger(__name__)

app = FastAPI(
    title="🚀 Inference Pipeline API",
    description="Configured inference pipelines served with Ray Serve + FastAPI",
    version="1.0.0",
)

_RAW_RESPONSES = {
    200: {"description": "Pipeline outputs keyed by output name"},
    400: {"description": "Invalid input", "model": ErrorResponse},
    415: {"description": "Unsupported data format", "model": ErrorResponse},
    503: {"description": "Pipeline not loaded", "model": ErrorResponse},
    500: {"description": "Internal server error", "model": ErrorResponse},
}


@serve.deployment(
    ray_actor_options={"num_cpus": 1},
)
@serve.ingress(app)
class InferenceDeployment:
    def __init__(self, config_path: str, model_dir: str | None = None) -> None:
        """Load the persisted configuration and every model it references.

        Relative model paths resolve against model_dir (the launching
        process's working directory).
        """
        logger.info("🚀 Initializing Inference Pipeline Service")
        self.status = APIStatus.NOT_READY
        self.config_path = str(Path(config_path).absolute())
        self.model_dir = model_dir
        self.config: InferenceConfiguration | None = None
        self.executor: PipelineExecutor | None = None
        self.start_time = datetime.now(timezone.utc)

        try:
            self._load_pipeline()
        except Exception as e:
            self.status = APIStatus.UNHEALTHY
            logger.error(f"❌ Failed to load pipeline from {self.config_path}: {e}")
            raise

    def _load_pipeline(self) -> None:
        self.status = APIStatus.LOADING
        self.config = load_configuration(self.config_path)

        executor = PipelineExecutor(self.config, base_dir=self.model_dir)
        executor.load()
        self.executor = executor

        self.status = APIStatus.HEALTHY
        serving = self.config.serving_config
        logger.info(f"✅ Pipeline loaded with {len(self.config.steps)} step(s)")
        logger.info(f"   Input format: {serving.input_data_format.value}")
        logger.info(f"   Output format: {serving.output_data_format.value}")

    @app.get(
        "/",
        response_model=RootResponse,
        summary="Root endpoint",
    )
    async def root(self):
        """Root endpoint with basic info."""
        return RootResponse(
            service="Inference Pipeline API",
            version="1.0.0",
            status=self.status.value,
            docs="/docs",
            health="/health",
        )

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        responses={
            200: {"description": "Service is healthy"},
            503: {"description": "Service is not ready or unhealthy"},
        },
    )
    async def health(self):
        """Health check endpoint."""
        uptime = (datetime.now(timezone.utc) - self.start_time).total_seconds()

        response = HealthResponse(
            status=self.status,
            pipeline_loaded=self.executor is not None,
            config_path=self.config_path,
            uptime_seconds=int(uptime),
        )

        if self.status != APIStatus.HEALTHY:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=response.model_dump(mode="json"),
            )
        return response

    @app.get("/config", summary="Loaded inference configuration")
    async def configuration(self):
        """Return the configuration document exactly as the server loaded it."""
        self._require_pipeline()
        return JSONResponse(
            content=self.config.model_dump(mode="json", by_alias=True)
        )

    @app.get("/info", response_model=PipelineInfo, summary="Pipeline Information")
    async def info(self):
        self._require_pipeline()
        serving = self.config.serving_config
        return PipelineInfo(
            config_path=self.config_path,
            http_port=serving.http_port,
            input_data_format=serving.input_data_format.value,
            output_data_format=serving.output_data_format.value,
            steps=[
                StepInfo(
                    type=step.type,
                    input_names=step.input_names,
                    output_names=step.output_names,
                    workers=step.workers,
                )
                for step in self.config.steps
            ],
        )

    @app.post("/raw", summary="Run the pipeline (configured input format)", responses=_RAW_RESPONSES)
    async def raw_default(self, request: Request):
        self._require_pipeline()
        return await self._infer(self.config.serving_config.input_data_format, request)

    @app.post("/raw/{data_format}", summary="Run the pipeline", responses=_RAW_RESPONSES)
    async def raw(self, data_format: str, request: Request):
        """
        Run the configured pipeline on one request.

        **Input Formats:**
        - numpy: multipart form, one field per input tensor holding a .npy file
        - json: a JSON object (one record) or a list of objects (batch)
        - nd4j: not supported by this server (415)

        **Output:** a JSON object keyed by output tensor or column name.
        """
        try:
            fmt = DataFormat.from_route(data_format)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e)
            )
        self._require_pipeline()
        return await self._infer(fmt, request)

    def _require_pipeline(self) -> None:
        if self.executor is None or self.config is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Pipeline not loaded.",
            )

    async def _infer(self, data_format: DataFormat, request: Request) -> JSONResponse:
        start_time = datetime.now(timezone.utc)

        try:
            ensure_decodable(data_format)
            if data_format == DataFormat.NUMPY:
                form = await request.form()
                fields = {
                    name: await value.read()
                    for name, value in form.multi_items()
                    if isinstance(value, UploadFile)
                }
                payload = decode_numpy_fields(fields)
            else:
                payload = decode_json_body(await request.body())

            outputs = self.executor.execute(payload)
            body = encode_outputs(outputs, self.config.serving_config.output_data_format)

        except HTTPException:
            raise
        except UnsupportedFormatError as e:
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=e.message
            )
        except ValueError as e:
            logger.error(f"❌ Validation error: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid input: {str(e)}",
            )
        except Exception as e:
            logger.error(f"❌ Inference error: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Inference failed: {str(e)}",
            )

        processing_time = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        logger.debug(f"Processed /raw/{data_format.value.lower()} in {processing_time:.1f} ms")
        return JSONResponse(content=body)


class AppBuilderArgs(BaseModel):
    """Arguments for building the Ray Serve application."""

    config_path: str = Field(
        default_factory=lambda: BASE_CNFG.config_path,
        description="Persisted inference configuration (JSON) to serve",
    )
    model_dir: str = Field(
        default_factory=lambda: str(Path.cwd()),
        description="Directory that relative model paths resolve against",
    )


def app_builder(args: AppBuilderArgs) -> Application:
    """Helper function to build the deployment for a configuration document.

    Examples:
        >>> serve run src.serving.serve:app_builder config_path="config.json"

    Args:
        args: Configuration arguments including the config path

    Returns:
        Ray Serve Application ready to deploy
    """
    config = load_configuration(args.config_path)
    return InferenceDeployment.options(num_replicas=config.workers).bind(
        config_path=str(Path(args.config_path).absolute()), model_dir=args.model_dir
    )
