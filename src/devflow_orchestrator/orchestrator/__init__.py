"""Workflow orchestration components.

Provides:
- Settings loaded from .env
- Structured logging
- Workflow definitions, transition resolution and instruction composition
- The plugin hook registry and the conversation orchestrator
- A small CLI surface
"""
