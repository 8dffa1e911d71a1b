"""
Data Set Endpoints
===================
  POST   /datasets                      — Create a data set
  GET    /datasets/{id}                 — Data set with its sample count
  POST   /datasets/{id}/samples         — Append samples
  GET    /datasets/{id}/samples         — One page of samples (ordered by id)
  DELETE /datasets/{id}/samples         — Delete samples by id
  POST   /datasets/{id}/import          — Import samples from a CSV / Parquet / Excel file
"""

import logging
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from algolab.core.database import get_db
from algolab.core.services.sample_service import DataSetService, SampleService
from algolab.models.domain import ClassificationSample, DataSet, DataSetType

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/datasets", tags=["Data Sets"])


# ═══════════════════════════════════════════════════════════════
# REQUEST SCHEMAS
# ═══════════════════════════════════════════════════════════════

class DataSetIn(BaseModel):
    name: str = Field(..., min_length=1)
    type: DataSetType = DataSetType.CLASSIFICATION
    description: Optional[str] = None
    author_id: Optional[int] = None


class SampleIn(BaseModel):
    features: Optional[List[float]] = None
    label: Optional[int] = None


class SamplesIn(BaseModel):
    samples: List[SampleIn]


class SampleIdsIn(BaseModel):
    sample_ids: List[int]


class ImportRequest(BaseModel):
    file_path: str
    label_column: Optional[str] = "label"


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════

@router.post("", status_code=201)
async def add_data_set(request: DataSetIn, db=Depends(get_db)):
    return DataSetService(db).add_data_set(DataSet(**request.model_dump()))


@router.get("/{data_set_id}")
async def get_data_set(data_set_id: int, db=Depends(get_db)):
    data_set = DataSetService(db).get_data_set(data_set_id)
    return {"data_set": data_set, "sample_count": SampleService(db).get_sample_count(data_set_id)}


@router.post("/{data_set_id}/samples", status_code=201)
async def add_samples(data_set_id: int, request: SamplesIn, db=Depends(get_db)):
    samples = [ClassificationSample(features=s.features, label=s.label) for s in request.samples]
    added = SampleService(db).add_samples(data_set_id, samples)
    return {"added": len(added), "sample_ids": [s.classification_sample_id for s in added]}


@router.get("/{data_set_id}/samples")
async def get_samples(
        data_set_id: int,
        start: int = Query(0, ge=0),
        count: int = Query(100, ge=1, le=1000),
        db=Depends(get_db),
):
    service = SampleService(db)
    DataSetService(db).get_data_set(data_set_id)
    return {
        "start": start,
        "total": service.get_sample_count(data_set_id),
        "samples": service.get_samples(data_set_id, start, count),
    }


@router.delete("/{data_set_id}/samples")
async def delete_samples(data_set_id: int, request: SampleIdsIn, db=Depends(get_db)):
    return {"deleted": SampleService(db).delete_samples(data_set_id, request.sample_ids)}


@router.post("/{data_set_id}/import", status_code=201)
async def import_samples(data_set_id: int, request: ImportRequest, db=Depends(get_db)):
    if not os.path.exists(request.file_path):
        raise HTTPException(status_code=404, detail=f"File not found: {request.file_path}")
    added = SampleService(db).import_file(data_set_id, request.file_path, request.label_column)
    return {"added": len(added)}
