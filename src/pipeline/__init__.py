# ==============================================================================
# Pipeline Module
# ==============================================================================
#
# Inference configuration: what the server runs.
#
# Components:
#   - schemas.py: Immutable configuration models (descriptor, steps, serving)
#   - transforms.py: Column schemas and transform processes
#   - assembler.py: Fluent builder for InferenceConfiguration
#   - persistence.py: JSON document writer/reader
#   - runners.py: Model runners per framework
#   - executor.py: Runs the configured steps on a request payload
#
# ==============================================================================
"""Inference pipeline configuration and execution."""
