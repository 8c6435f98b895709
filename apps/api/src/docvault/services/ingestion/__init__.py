from docvault.services.ingestion.lifecycle import IngestionService, IngestionStats
from docvault.services.ingestion.simulator import (
    ProgressSimulator,
    SimulationFailure,
    SimulationTimings,
)

__all__ = [
    "IngestionService",
    "IngestionStats",
    "ProgressSimulator",
    "SimulationFailure",
    "SimulationTimings",
]
