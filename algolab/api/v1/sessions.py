"""
Session + Estimation Endpoints
===============================
  GET  /sessions/{id}              — Session with its bound parameter values
  POST /sessions/{id}/compute      — Run a queued session now (409 if already consumed)
  GET  /sessions/{id}/estimations  — Every estimation recorded for the session
  GET  /estimations/{id}           — One estimation plus its classification results
"""

import logging

from fastapi import APIRouter, Depends

from algolab.core.database import get_db
from algolab.core.services.algorithm_service import AlgorithmService
from algolab.core.services.result_service import ClassificationResultService, EstimationService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Sessions"])


@router.get("/sessions/{session_id}")
async def get_session(session_id: int, db=Depends(get_db)):
    return await AlgorithmService(db).get_algorithm_session(session_id)


@router.post("/sessions/{session_id}/compute")
async def compute_session(session_id: int, db=Depends(get_db)):
    estimation = await AlgorithmService(db).compute_classification_algorithm(session_id)
    session = await AlgorithmService(db).get_algorithm_session(session_id)
    return {"session": session, "estimation": estimation}


@router.get("/sessions/{session_id}/estimations")
async def get_session_estimations(session_id: int, db=Depends(get_db)):
    await AlgorithmService(db).get_algorithm_session(session_id)
    return EstimationService(db).get_session_estimations(session_id)


@router.get("/estimations/{estimation_id}")
async def get_estimation(estimation_id: int, db=Depends(get_db)):
    estimation = EstimationService(db).get_estimation(estimation_id)
    results = ClassificationResultService(db).get_classification_results(estimation_id)
    return {"estimation": estimation, "results": results}
