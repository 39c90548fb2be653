"""
VideoLens - AI video analysis relay.

This package contains the complete application:
- core: Framework-agnostic input normalization, prompts, and models
- infrastructure: The OpenRouter relay
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
