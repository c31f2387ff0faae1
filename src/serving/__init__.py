# ==============================================================================
# Serving Module
# ==============================================================================
#
# Inference serving with Ray Serve + FastAPI, driven by a persisted
# InferenceConfiguration document.
#
# Components:
#   - serve.py: Ray Serve deployment with FastAPI
#   - schemas.py: Pydantic response models
#   - codecs.py: Request decoding / response encoding per data format
#   - launcher.py: Starts the server and fires the ready callback
#   - config.py: Serving settings
#
# Entry Points:
#   serve run src.serving.serve:app_builder config_path="config.json"
#   python -m src.launch --configPath config.json
#
# ==============================================================================
"""Serving module for configured inference pipelines."""
