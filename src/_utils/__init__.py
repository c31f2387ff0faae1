# ==============================================================================
# Utilities Module
# ==============================================================================
#
# Shared utilities for the serving examples.
#
# Components:
#   - logging.py: Rich-based logging configuration
#
# Usage:
#   from src._utils.logging import get_logger, log_section
#
# ==============================================================================
"""Shared utilities for the model-serving examples."""
