"""
Primary metrics source — external collaborator adapters.

A provider answers query() with the hierarchical payload (a JSON object, see
analytics/aggregate.PrimaryPayload). Any exception it raises is treated by the
resolution chain exactly like a malformed or empty answer.
"""
from __future__ import annotations

import json
import logging
import shlex
import subprocess
from typing import Any, Optional, Protocol

import httpx

from dbc_explorer.errors import MalformedResponse, SourceUnavailable
from dbc_explorer.settings import Settings

logger = logging.getLogger(__name__)


class MetricsProvider(Protocol):
    def query(self) -> Any: ...


class CommandMetricsProvider:
    """
    Runs a command that prints the payload as JSON on stdout.

    Same contract as an instrumentation script: exit 0 and one JSON object,
    anything else is a failed source.
    """

    def __init__(self, command: str, timeout: float = 10.0, cwd: Optional[str] = None):
        self.argv    = shlex.split(command)
        self.timeout = timeout
        self.cwd     = cwd

    def query(self) -> Any:
        try:
            proc = subprocess.run(
                self.argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise SourceUnavailable(f"{self.argv[0]}: {exc}") from exc
        if proc.returncode != 0:
            raise SourceUnavailable(
                f"{self.argv[0]} exited with {proc.returncode}: {proc.stderr.strip()[:200]}"
            )
        try:
            return json.loads(proc.stdout)
        except json.JSONDecodeError as exc:
            raise MalformedResponse(f"{self.argv[0]} did not print JSON: {exc}") from exc


class HttpMetricsProvider:
    """GETs the payload from a metrics endpoint."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.url     = url
        self.timeout = timeout
        self._client = client

    def query(self) -> Any:
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            resp = client.get(self.url)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"GET {self.url}: {exc}") from exc
        except ValueError as exc:
            raise MalformedResponse(f"GET {self.url} did not return JSON") from exc
        finally:
            if self._client is None:
                client.close()


def provider_from_settings(settings: Settings) -> Optional[MetricsProvider]:
    if settings.primary_command:
        logger.info("primary source: command %r", settings.primary_command)
        return CommandMetricsProvider(settings.primary_command, settings.primary_timeout)
    if settings.primary_url:
        logger.info("primary source: %s", settings.primary_url)
        return HttpMetricsProvider(settings.primary_url, settings.primary_timeout)
    return None
