"""
Data sets and their samples.
"""

import logging
from typing import List, Optional

import pandas as pd

from algolab.core.database import TransactionScope
from algolab.core.errors import InvalidArgumentError
from algolab.models.domain import ClassificationSample, DataSet
from algolab.persistence.daos import ClassificationSampleDao, DataSetDao

logger = logging.getLogger(__name__)


class DataSetService:

    def __init__(self, db):
        self.transaction_scope = TransactionScope(db)
        self.data_set_dao = DataSetDao(db)

    def add_data_set(self, data_set: DataSet) -> DataSet:
        data_set.data_set_id = 0
        with self.transaction_scope.begin():
            added = self.data_set_dao.add_data_set(data_set)
        logger.info(f"Data set {added.data_set_id} '{added.name}' ({added.type.value}) added")
        return added

    def get_data_set(self, data_set_id: int) -> DataSet:
        return self.data_set_dao.get_data_set(data_set_id)


class SampleService:

    def __init__(self, db):
        self.transaction_scope = TransactionScope(db)
        self.data_set_dao = DataSetDao(db)
        self.sample_dao = ClassificationSampleDao(db)

    def add_samples(self, data_set_id: int, samples: List[ClassificationSample]) -> List[ClassificationSample]:
        self.data_set_dao.get_data_set(data_set_id)
        with self.transaction_scope.begin():
            added = self.sample_dao.add_samples(data_set_id, samples)
        logger.info(f"Data set {data_set_id}: {len(added)} samples added")
        return added

    def get_sample_count(self, data_set_id: int) -> int:
        return self.sample_dao.get_sample_count(data_set_id)

    def get_samples(self, data_set_id: int, start: int, count: int) -> List[ClassificationSample]:
        if start < 0 or count < 0:
            raise InvalidArgumentError("start and count must not be negative")
        return self.sample_dao.get_samples(data_set_id, start, count)

    def get_all_samples(self, data_set_id: int) -> List[ClassificationSample]:
        return self.sample_dao.get_samples(data_set_id, 0, self.get_sample_count(data_set_id))

    def delete_samples(self, data_set_id: int, sample_ids: List[int]) -> int:
        with self.transaction_scope.begin():
            deleted = self.sample_dao.delete_samples(data_set_id, sample_ids)
        logger.info(f"Data set {data_set_id}: {deleted} samples deleted")
        return deleted

    def import_frame(self, data_set_id: int, frame: pd.DataFrame, label_column: Optional[str] = "label") -> List[ClassificationSample]:
        """
        One sample per row. Numeric columns other than `label_column` form the
        feature vector, in column order; a missing label stays None.
        """
        has_labels = bool(label_column) and label_column in frame.columns
        features = frame.drop(columns=[label_column]) if has_labels else frame
        features = features.select_dtypes(include="number")
        if features.shape[1] == 0:
            raise InvalidArgumentError("frame has no numeric feature columns")

        labels = frame[label_column] if has_labels else pd.Series([None] * len(frame), index=frame.index)
        samples = [
            ClassificationSample(
                features=[float(v) for v in row],
                label=None if pd.isna(label) else int(label),
            )
            for row, label in zip(features.itertuples(index=False, name=None), labels)
        ]
        return self.add_samples(data_set_id, samples)

    def import_file(self, data_set_id: int, file_path: str, label_column: Optional[str] = "label") -> List[ClassificationSample]:
        if file_path.endswith(".parquet"):
            frame = pd.read_parquet(file_path)
        elif file_path.endswith((".xls", ".xlsx")):
            frame = pd.read_excel(file_path)
        else:
            frame = pd.read_csv(file_path)
        logger.info(f"Data set {data_set_id}: importing {len(frame)} rows from {file_path}")
        return self.import_frame(data_set_id, frame, label_column)
