"""
Core business logic for video analysis.

This module is framework-agnostic - it doesn't import FastAPI, httpx,
or any infrastructure concerns. This separation means we can test the
normalization and prompt logic in isolation.
"""
