"""
agentflow Test Suite
====================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → Tests for agentflow.core (config, models, enums, errors)
    ├── test_orchestration/ → Tests for agentflow.orchestration (engines, state)
    ├── test_infrastructure/→ Tests for agentflow.infrastructure (access control)
    ├── test_api/           → Tests for the FastAPI surface
    ├── test_integration/   → End-to-end scenarios through the facade
    ├── test_facade.py      → Tests for the AgentFlow facade
    └── conftest.py         → Shared pytest fixtures

Running Tests:
    pytest                          # Run all tests
    pytest tests/test_core/         # Run only core tests
    pytest --cov=agentflow          # Run with coverage report
"""
