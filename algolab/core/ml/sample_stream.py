"""
Sample Stream — lazy, paged, restartable iteration over a data set's samples.
===============================================================================
A stream holds no cursor. Every `for` / `async for` starts a fresh pass at
the first sample and pulls one page at a time, so memory is bounded by the
page size and two passes (or two streams over the same data set) never see
each other's position. Reads only; nothing is locked or written.

Usage:
    stream = DataSetSampleStreamFactory(db).get_stream(data_set_id)
    for sample in stream: ...           # training pass
    async for sample in stream: ...     # decision pass
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Dict, Generic, Iterator, List, Type, TypeVar

from algolab.config import settings
from algolab.core.errors import InvalidArgumentError
from algolab.models.domain import ClassificationSample
from algolab.persistence.daos import ClassificationSampleDao

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataSetSampleStream(Generic[T]):

    def __init__(self, data_set_id: int, fetch_page: Callable[[int, int, int], List[T]], page_size: int):
        if page_size < 1:
            raise InvalidArgumentError(f"page_size must be positive, got {page_size}")
        self.data_set_id = data_set_id
        self.page_size = page_size
        self._fetch_page = fetch_page

    def _pages(self) -> Iterator[List[T]]:
        start = 0
        while True:
            page = self._fetch_page(self.data_set_id, start, self.page_size)
            if page:
                yield page
            if len(page) < self.page_size:
                return
            start += len(page)

    def __iter__(self) -> Iterator[T]:
        for page in self._pages():
            yield from page

    async def __aiter__(self) -> AsyncIterator[T]:
        for page in self._pages():
            for item in page:
                yield item
            # let other sessions run between pages
            await asyncio.sleep(0)


class DataSetSampleStreamFactory:

    def __init__(self, db, page_size: int = None):
        self.page_size = page_size or settings.SAMPLE_PAGE_SIZE
        self._sources: Dict[type, Callable[[int, int, int], list]] = {
            ClassificationSample: ClassificationSampleDao(db).get_samples,
        }

    def get_stream(self, data_set_id: int, sample_type: Type[T] = ClassificationSample) -> DataSetSampleStream[T]:
        fetch_page = self._sources.get(sample_type)
        if fetch_page is None:
            raise InvalidArgumentError(f"No sample stream for {getattr(sample_type, '__name__', sample_type)}")
        return DataSetSampleStream(data_set_id, fetch_page, self.page_size)
