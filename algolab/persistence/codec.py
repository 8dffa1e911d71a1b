"""
Feature Vector Codec — fixed-capacity chunk packing for sample storage.
=========================================================================
A sample's feature vector is stored as its length (`count`) plus an ordered
collection of chunks, each holding at most CAPACITY doubles:

    encode([1, 2, ..., 10])  ->  [FeatureChunk(0, (1..8)), FeatureChunk(1, (9, 10))]
    decode(10, chunks)       ->  [1.0, ..., 10.0]

Decoding always sorts by chunk order; storage order is never trusted.
None means "no vector" and is kept distinct from the empty vector
(count 0, zero chunks) in both directions.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

# Must match the number of value_N columns on FeatureTupleEntity.
CAPACITY = 8


@dataclass(frozen=True)
class FeatureChunk:
    order: int
    values: Tuple[float, ...]


def encode(vector: Optional[Sequence[float]]) -> Optional[List[FeatureChunk]]:
    """Split a vector into ceil(len / CAPACITY) chunks tagged 0, 1, 2, ..."""
    if vector is None:
        return None

    values = [float(v) for v in vector]
    chunk_count = math.ceil(len(values) / CAPACITY)
    return [
        FeatureChunk(order=i, values=tuple(values[i * CAPACITY:(i + 1) * CAPACITY]))
        for i in range(chunk_count)
    ]


def decode(count: Optional[int], chunks: Optional[Iterable[FeatureChunk]]) -> Optional[List[float]]:
    """
    Rebuild a vector of exactly `count` values from its chunks.

    Chunks are concatenated in ascending order; surplus values are dropped and
    missing ones (gaps in the order sequence) are padded with 0.0.
    """
    if chunks is None or count is None:
        return None

    result: List[float] = []
    for chunk in sorted(chunks, key=lambda c: c.order):
        for value in chunk.values:
            if len(result) >= count:
                break
            result.append(0.0 if value is None else float(value))
        if len(result) >= count:
            break

    if len(result) < count:
        result.extend([0.0] * (count - len(result)))
    return result
