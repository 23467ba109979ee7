"""
Heights AI - query orchestration engine for an AI investment assistant

Layers:
- domain: immutable records and enums
- ports / adapters: provider interfaces and their implementations
- gateway: failure-safe provider access with cache and rate limits
- orchestrator: classifier, planner and the query pipeline
- synthesis / scoring: answer repair, fact extraction, confidence
- api: FastAPI service
"""

__version__ = "1.0.0"
