"""
Algorithm Endpoints
====================
  GET    /algorithms               — All algorithms with their parameters
  GET    /algorithms/{id}          — One algorithm
  POST   /algorithms               — Add an algorithm (406 with field errors when invalid)
  PUT    /algorithms/{id}          — Update an algorithm and reconcile its parameters
  DELETE /algorithms/{id}          — Delete an algorithm and its parameters
  POST   /algorithms/{id}/run      — Queue a session of the algorithm on a data set
  GET    /algorithms/classifiers   — Registered classifier and estimate aliases

Domain errors propagate to the exception handlers registered in main.py.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from algolab.core.database import get_db
from algolab.core.ml.factories import ClassifierEstimateFactory, ClassifierFactory
from algolab.core.services.algorithm_service import AlgorithmService
from algolab.models.domain import (
    Algorithm, AlgorithmParameter, AlgorithmParameterValue, EstimateRequest, ParameterType,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/algorithms", tags=["Algorithms"])


# ═══════════════════════════════════════════════════════════════
# REQUEST SCHEMAS
# ═══════════════════════════════════════════════════════════════

class ParameterIn(BaseModel):
    algorithm_parameter_id: int = Field(default=0, description="0 = new parameter")
    name: str = ""
    type: str = Field(default=ParameterType.STRING.value, description="int | double | string")
    default_value: Optional[str] = None


class AlgorithmIn(BaseModel):
    name: str = ""
    alias: str = ""
    is_classification_algorithm: bool = True
    description: Optional[str] = None
    parameters: List[ParameterIn] = []

    def to_domain(self, algorithm_id: int = 0, author_id: Optional[int] = None) -> Algorithm:
        return Algorithm(
            algorithm_id=algorithm_id,
            name=self.name,
            alias=self.alias,
            is_classification_algorithm=self.is_classification_algorithm,
            description=self.description,
            author_id=author_id,
            parameters=[
                AlgorithmParameter(
                    algorithm_parameter_id=p.algorithm_parameter_id,
                    algorithm_id=algorithm_id,
                    name=p.name,
                    type=p.type,
                    default_value=p.default_value,
                )
                for p in self.parameters
            ],
        )


class ParameterValueIn(BaseModel):
    algorithm_parameter_id: int
    int_value: Optional[int] = None
    double_value: Optional[float] = None
    string_value: Optional[str] = None


class EstimateIn(BaseModel):
    alias: str
    config: Optional[str] = Field(default=None, description="JSON config for the estimate")


class RunRequest(BaseModel):
    data_set_id: int
    parameter_values: List[ParameterValueIn] = []
    estimate: Optional[EstimateIn] = None


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════

@router.get("/classifiers")
async def list_aliases():
    return {
        "classifiers": ClassifierFactory().aliases(),
        "estimates": ClassifierEstimateFactory().aliases(),
    }


@router.get("")
async def list_algorithms(db=Depends(get_db)):
    return await AlgorithmService(db).get_all_algorithms()


@router.get("/{algorithm_id}")
async def get_algorithm(algorithm_id: int, db=Depends(get_db)):
    return await AlgorithmService(db).get_algorithm(algorithm_id)


@router.post("", status_code=201)
async def add_algorithm(
        request: AlgorithmIn,
        user_id: Optional[int] = Query(None, description="Author of the new algorithm"),
        db=Depends(get_db),
):
    return await AlgorithmService(db).add_algorithm(request.to_domain(), user_id=user_id)


@router.put("/{algorithm_id}")
async def update_algorithm(
        algorithm_id: int,
        request: AlgorithmIn,
        user_id: Optional[int] = Query(None, description="Caller; must own the algorithm when given"),
        db=Depends(get_db),
):
    return await AlgorithmService(db).update_algorithm(request.to_domain(algorithm_id), user_id=user_id)


@router.delete("/{algorithm_id}")
async def delete_algorithm(
        algorithm_id: int,
        user_id: Optional[int] = Query(None, description="Caller; must own the algorithm when given"),
        db=Depends(get_db),
):
    await AlgorithmService(db).delete_algorithm(algorithm_id, user_id=user_id)
    return {"deleted": algorithm_id}


@router.post("/{algorithm_id}/run", status_code=202)
async def run_algorithm(algorithm_id: int, request: RunRequest, db=Depends(get_db)):
    estimate = EstimateRequest(request.estimate.alias, request.estimate.config) if request.estimate else None
    values = [AlgorithmParameterValue(**v.model_dump()) for v in request.parameter_values]
    return await AlgorithmService(db).run_algorithm(algorithm_id, request.data_set_id, values, estimate)
