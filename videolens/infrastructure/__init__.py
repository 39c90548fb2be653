"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- openrouter: multimodal chat-completions relay

These wrappers translate between external formats and our domain models.
"""
