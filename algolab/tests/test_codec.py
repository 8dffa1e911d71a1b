"""
Feature vector codec — chunk packing and its round trip through the sample tables.
"""

import random

from algolab.persistence.codec import CAPACITY, FeatureChunk, decode, encode
from algolab.persistence.daos import ClassificationSampleDao, DataSetDao
from algolab.models.domain import ClassificationSample
from algolab.tests.builders import make_data_set


class TestEncode:

    def test_none_stays_none(self):
        assert encode(None) is None

    def test_empty_vector_has_no_chunks(self):
        assert encode([]) == []

    def test_partial_last_chunk(self):
        chunks = encode([float(i) for i in range(10)])
        assert [c.order for c in chunks] == [0, 1]
        assert len(chunks[0].values) == CAPACITY
        assert chunks[1].values == (8.0, 9.0)

    def test_exact_multiple_has_no_trailing_empty_chunk(self):
        chunks = encode([1.0] * (2 * CAPACITY))
        assert len(chunks) == 2
        assert all(len(c.values) == CAPACITY for c in chunks)


class TestDecode:

    def test_absent_inputs(self):
        assert decode(None, []) is None
        assert decode(3, None) is None

    def test_empty(self):
        assert decode(0, []) == []

    def test_order_is_taken_from_chunks_not_storage(self):
        vector = [float(i) for i in range(19)]
        chunks = encode(vector)
        random.Random(7).shuffle(chunks)
        assert decode(len(vector), chunks) == vector

    def test_surplus_values_are_dropped(self):
        chunk = FeatureChunk(order=0, values=(1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0))
        assert decode(3, [chunk]) == [1.0, 2.0, 3.0]

    def test_missing_values_are_zero_padded(self):
        chunk = FeatureChunk(order=0, values=(1.0, 2.0))
        assert decode(4, [chunk]) == [1.0, 2.0, 0.0, 0.0]

    def test_round_trip_lengths_around_capacity(self):
        for n in (1, CAPACITY - 1, CAPACITY, CAPACITY + 1, 3 * CAPACITY):
            vector = [i * 0.5 for i in range(n)]
            assert decode(n, encode(vector)) == vector


class TestStoredSamples:

    def _store(self, db, features):
        data_set = DataSetDao(db).add_data_set(make_data_set())
        dao = ClassificationSampleDao(db)
        dao.add_samples(data_set.data_set_id, [ClassificationSample(features=features, label=1)])
        db.commit()
        return dao.get_samples(data_set.data_set_id, 0, 10)[0]

    def test_vector_longer_than_one_tuple(self, db):
        features = [float(i) for i in range(CAPACITY + 3)]
        assert self._store(db, features).features == features

    def test_empty_vector(self, db):
        assert self._store(db, []).features == []

    def test_missing_vector(self, db):
        assert self._store(db, None).features is None
