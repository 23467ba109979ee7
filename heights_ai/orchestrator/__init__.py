"""
Orchestration layer - classification, planning and the query pipeline

Contains:
- QueryClassifier: raw query -> ClassifiedQuery
- StrategyPlanner: ClassifiedQuery -> ProcessingStrategy
- Orchestrator: process_query / stream_process_query
"""

from heights_ai.orchestrator.classifier import QueryClassifier
from heights_ai.orchestrator.planner import StrategyPlanner
from heights_ai.orchestrator.orchestrator import Orchestrator

__all__ = [
    "QueryClassifier",
    "StrategyPlanner",
    "Orchestrator",
]
