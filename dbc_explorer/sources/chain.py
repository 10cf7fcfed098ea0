"""
Metrics resolution chain.

An ordered list of strategies, each answering try_resolve() with a Snapshot
or None. The first non-empty Snapshot wins; results are never merged.
With the sample dataset last, resolve() always returns data.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from dbc_explorer.analytics.aggregate import snapshot_from_payload, snapshot_from_scan
from dbc_explorer.errors import EmptyResult, SourceUnavailable
from dbc_explorer.models import Snapshot
from dbc_explorer.sources.primary import MetricsProvider
from dbc_explorer.sources.sample import sample_snapshot
from dbc_explorer.sources.scanner import EnvironmentScanner

logger = logging.getLogger(__name__)


class ResolutionStrategy(Protocol):
    name: str

    def try_resolve(self) -> Optional[Snapshot]: ...


class PrimarySource:
    name = "primary"

    def __init__(self, provider: MetricsProvider):
        self.provider = provider

    def try_resolve(self) -> Optional[Snapshot]:
        try:
            snapshot = snapshot_from_payload(self.provider.query())
            if snapshot.is_empty:
                raise EmptyResult("primary source returned no libraries")
        except SourceUnavailable as exc:
            logger.info("primary source skipped: %s", exc)
            return None
        except Exception:
            # provider bugs count as an unavailable source too
            logger.warning("primary source failed", exc_info=True)
            return None
        return snapshot


class ScannerSource:
    name = "environment"

    def __init__(self, scanner: EnvironmentScanner):
        self.scanner = scanner

    def try_resolve(self) -> Optional[Snapshot]:
        try:
            snapshot = snapshot_from_scan(self.scanner.scan())
        except Exception:
            logger.warning("environment scan failed", exc_info=True)
            return None
        if snapshot.is_empty:
            logger.info("environment scan found no library roots")
            return None
        return snapshot


class SampleSource:
    name = "sample"

    def try_resolve(self) -> Optional[Snapshot]:
        return sample_snapshot()


class ResolutionChain:
    def __init__(self, strategies: Sequence[ResolutionStrategy]):
        self.strategies  = list(strategies)
        self.last_source: Optional[str] = None
        self.calls = 0

    def resolve(self) -> Snapshot:
        self.calls += 1
        for strategy in self.strategies:
            snapshot = strategy.try_resolve()
            if snapshot is not None and not snapshot.is_empty:
                self.last_source = strategy.name
                logger.info("metrics resolved from %s source (%d libraries, score %d)",
                            strategy.name, snapshot.library_count, snapshot.score)
                return snapshot
        self.last_source = None
        raise EmptyResult("no metrics source produced data")


def build_chain(provider: Optional[MetricsProvider], scanner: EnvironmentScanner) -> ResolutionChain:
    """primary → environment → sample; the primary link is left out when no provider exists."""
    strategies: list[ResolutionStrategy] = []
    if provider is not None:
        strategies.append(PrimarySource(provider))
    strategies.append(ScannerSource(scanner))
    strategies.append(SampleSource())
    return ResolutionChain(strategies)
