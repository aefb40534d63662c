"""
RepoPipeline - multi-repository build and container publishing pipeline
"""

__version__ = "0.3.0"

from .core import PipelineError, RepoPipeline

__all__ = ["RepoPipeline", "PipelineError"]
