"""Stream orchestration: group samples by file and merge files concurrently."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from covmerge.aggregator import aggregate_file
from covmerge.config import validate_config
from covmerge.reader import iter_samples
from covmerge.resolvers import create_resolver

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import TextIO

    from covmerge.config import MergeConfig
    from covmerge.models.records import RepoCommit, SampleRecord
    from covmerge.models.result import MergeResult
    from covmerge.resolvers.base import FileVersionResolver

logger = logging.getLogger(__name__)


class MergeError(Exception):
    """Raised when merging one file fails; aborts the whole run."""

    def __init__(self, file_path: str, cause: BaseException) -> None:
        """Initialize with the failing file and the underlying error.

        Args:
            file_path: File whose merge failed.
            cause: The underlying exception.
        """
        super().__init__(f"Failed to merge {file_path}: {cause}")
        self.file_path = file_path
        self.cause = cause


def group_by_file(records: Iterable[SampleRecord]) -> dict[str, list[SampleRecord]]:
    """Buffer a record stream into per-file lists, preserving arrival order."""
    groups: dict[str, list[SampleRecord]] = {}
    for record in records:
        groups.setdefault(record.file_path, []).append(record)
    return groups


def _commits_for(samples: list[SampleRecord], base: RepoCommit) -> list[RepoCommit]:
    """Distinct commits referenced by *samples*, plus the base commit."""
    commits = dict.fromkeys(sample.repo_commit for sample in samples)
    commits[base] = None
    return list(commits)


class MergeOrchestrator:
    """Merges grouped samples with a bounded pool of worker tasks.

    Files are independent: each worker takes the next file path from a
    shared queue, resolves the file's content at every commit it needs in
    one batched request, and aggregates.  The first failure cancels the
    other workers and is re-raised; no partial result is returned.
    """

    def __init__(self, base: RepoCommit, resolver: FileVersionResolver, max_concurrency: int = 4) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self._base = base
        self._resolver = resolver
        self._max_concurrency = max_concurrency

    async def merge_file(self, file_path: str, samples: list[SampleRecord]) -> MergeResult:
        """Resolve and aggregate a single file.

        Raises:
            MergeError: If content resolution or aggregation fails.
        """
        try:
            versions = await self._resolver.resolve(file_path, _commits_for(samples, self._base))
            # CPU-bound; runs off the event loop.
            return await asyncio.to_thread(aggregate_file, file_path, samples, versions, self._base)
        except Exception as exc:
            logger.debug("Merging %s failed: %s", file_path, exc)
            raise MergeError(file_path, exc) from exc

    async def _worker(
        self,
        queue: asyncio.Queue[str],
        groups: dict[str, list[SampleRecord]],
        results: dict[str, MergeResult],
    ) -> None:
        while True:
            try:
                file_path = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            results[file_path] = await self.merge_file(file_path, groups[file_path])
            queue.task_done()

    async def run(self, groups: dict[str, list[SampleRecord]]) -> dict[str, MergeResult]:
        """Merge every file in *groups* and return one result per file."""
        queue: asyncio.Queue[str] = asyncio.Queue()
        for file_path in sorted(groups):
            queue.put_nowait(file_path)

        results: dict[str, MergeResult] = {}
        worker_count = min(self._max_concurrency, len(groups))
        logger.info("Merging %d files with %d workers", len(groups), worker_count)

        workers = [
            asyncio.create_task(self._worker(queue, groups, results)) for _ in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise
        return results


async def merge_stream(config: MergeConfig, records: Iterable[SampleRecord]) -> dict[str, MergeResult]:
    """Merge a stream of sample records onto the configured base commit.

    The stream is fully buffered and grouped by file before any file is
    merged, since a file's samples may be interleaved with other files'.

    Returns:
        File path to merge result, one entry per file seen in the stream.

    Raises:
        ValueError: If the configuration is invalid.
        RecordParseError: If the stream contains a malformed row.
        MergeError: If any file fails to merge.
    """
    errors = validate_config(config)
    if errors:
        raise ValueError("Invalid merge configuration: " + "; ".join(errors))

    groups = group_by_file(records)
    logger.info(
        "Buffered %d records for %d files",
        sum(len(samples) for samples in groups.values()),
        len(groups),
    )

    resolver = config.resolver_backend or create_resolver(
        config.resolver,
        config.workdir,
        skip_checkout=config.skip_checkout,
        git_timeout=config.git_timeout,
    )
    orchestrator = MergeOrchestrator(config.base, resolver, max_concurrency=config.jobs)
    try:
        results = await orchestrator.run(groups)
    finally:
        if config.resolver_backend is None:
            await resolver.close()

    logger.info("Merged %d files onto %s", len(results), config.base)
    return results


def merge_csv(config: MergeConfig, stream: TextIO) -> dict[str, MergeResult]:
    """Synchronous entry point: merge a delimited-text stream."""
    return asyncio.run(merge_stream(config, iter_samples(stream)))
