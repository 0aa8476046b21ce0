"""
Pipeline Core Tests
===================

Structure:
- unit/ - store, validator, runtime, broker, lifecycle and processor in isolation
- integration/ - orchestrator end to end, HTTP API, YAML import/export
"""
