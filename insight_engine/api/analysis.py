"""
FastAPI router module for the intelligence engine.

Implements:
- POST /analysis/run: analyze a batch of raw records
- POST /analysis/simulate: counterfactual simulation of one Observation
- POST /analysis/classify: classify a precomputed FeatureVector
- GET /analysis/rules: the active classification rule table

Error mapping:
- EmptyInputError -> 422 with the diagnostic report
- ValidationError -> 422
- persist requested without a configured database -> 400
- anything else -> 500
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel, Field

from insight_engine.core.dependencies import SettingsDep
from insight_engine.core.exceptions import EmptyInputError, ValidationError
from insight_engine.models import (
    AnalysisResult,
    AnalysisRunRequest,
    FeatureVector,
    Scenario,
    ScenarioRule,
    SimulationRequest,
    SimulationResult,
)
from insight_engine.services.persistence import persist_insights, persist_simulations
from insight_engine.services.pipeline import get_engine


# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# Local Pydantic Models for API Responses
# =============================================================================


class RunResponse(AnalysisResult):
    """AnalysisResult plus persistence bookkeeping."""
    persistedInsights: int = Field(default=0, ge=0, description="Insight rows written")
    persistedSimulations: int = Field(default=0, ge=0, description="Simulation rows written")


class SimulateResponse(BaseModel):
    """Response model for the simulate endpoint."""
    result: SimulationResult
    persisted: bool = False
    runId: Optional[str] = Field(
        default=None,
        description="Run id the result was stored under, when persisted"
    )


class RulesResponse(BaseModel):
    """Response model for the rule table endpoint."""
    defaultId: str
    rules: List[ScenarioRule] = Field(default_factory=list)


# =============================================================================
# Router Definition
# =============================================================================

router = APIRouter(prefix="/analysis", tags=["analysis"])


def _require_database(settings) -> None:
    if not settings.database_url:
        raise HTTPException(
            status_code=400,
            detail="Persistence requested but DATABASE_URL is not configured"
        )


# =============================================================================
# Endpoint Implementations
# =============================================================================


@router.post("/run", response_model=RunResponse)
async def run_analysis_endpoint(
    settings: SettingsDep,
    request: AnalysisRunRequest = Body(...),
) -> RunResponse:
    """
    Run the full pipeline over the submitted records.

    Args:
        request: Records, optional per-run config and as-of time, persist flag

    Returns:
        RunResponse with scenario, ranked insights, feature vector,
        meta analysis and diagnostic report

    Raises:
        HTTPException(422) if no record survives normalization
        HTTPException(400) if persistence is requested without a database
    """
    if request.persist:
        _require_database(settings)

    try:
        result = await get_engine().run_analysis(request.records, request.config, request.asOf)
    except EmptyInputError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "report": e.report.model_dump(mode="json")}
        )
    except Exception as e:
        logger.exception("Error running analysis")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to run analysis: {str(e)}"
        )

    response = RunResponse(**result.model_dump())
    if request.persist:
        try:
            response.persistedInsights = await persist_insights(result.insights, result.runId)
            response.persistedSimulations = await persist_simulations(
                result.simulations, result.runId
            )
        except Exception as e:
            logger.exception(f"Error persisting run {result.runId}")
            raise HTTPException(
                status_code=500,
                detail=f"Run {result.runId} completed but persistence failed: {str(e)}"
            )

    logger.info(
        f"Run {result.runId}: scenario '{result.scenario.id}', "
        f"{len(result.insights)} insights"
    )
    return response


@router.post("/simulate", response_model=SimulateResponse)
async def simulate_endpoint(
    settings: SettingsDep,
    request: SimulationRequest = Body(...),
) -> SimulateResponse:
    """
    Project the efficiency one Observation would have reached with known fixes.

    Raises:
        HTTPException(422) if the Observation has no usable baseline efficiency
    """
    if request.persist:
        _require_database(settings)

    try:
        result = get_engine().simulate(request.observation)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if not request.persist:
        return SimulateResponse(result=result)

    run_id = f"simulation-{request.observation.id}"
    try:
        await persist_simulations([result], run_id)
    except Exception as e:
        logger.exception("Error persisting simulation")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to persist simulation: {str(e)}"
        )
    return SimulateResponse(result=result, persisted=True, runId=run_id)


@router.post("/classify", response_model=Scenario)
async def classify_endpoint(
    feature_vector: FeatureVector = Body(...),
) -> Scenario:
    """Classify a precomputed FeatureVector against the active rule table."""
    return get_engine().classify(feature_vector)


@router.get("/rules", response_model=RulesResponse)
async def list_rules() -> RulesResponse:
    """Return the active rule table in priority order."""
    table = get_engine().rule_table
    return RulesResponse(defaultId=table.default_id, rules=list(table.rules))


__all__ = ["router", "RunResponse", "SimulateResponse", "RulesResponse"]
