"""
API Router — Combines all endpoint groups under /api/v1.

  /algorithms/*               — algorithm records + run requests
  /sessions/*, /estimations/* — session execution and estimation results
  /datasets/*                 — data sets and their samples
"""

from fastapi import APIRouter

from algolab.api.v1.algorithms import router as algorithms_router
from algolab.api.v1.datasets import router as datasets_router
from algolab.api.v1.sessions import router as sessions_router

api_router = APIRouter()

api_router.include_router(algorithms_router)
api_router.include_router(sessions_router)
api_router.include_router(datasets_router)
