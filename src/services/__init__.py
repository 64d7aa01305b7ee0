"""
Services Package

Request handling and the synthetic workload it runs.
"""

from src.services.hello import CorrelatedRequestHandler, HelloResponse
from src.services.workload import SyntheticWorkload

__all__ = ["CorrelatedRequestHandler", "HelloResponse", "SyntheticWorkload"]
