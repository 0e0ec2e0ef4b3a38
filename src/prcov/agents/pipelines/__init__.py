"""Pipeline orchestration modules."""

from prcov.agents.pipelines.score import (
    ScorePipeline,
    ScorePipelineResult,
    create_score_pipeline,
)

__all__ = [
    "ScorePipeline",
    "ScorePipelineResult",
    "create_score_pipeline",
]
