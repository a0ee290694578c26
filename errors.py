#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Failure kinds raised by the upstream clients and the refresh pipeline.

- UpstreamUnavailable: transport error or non-success status. Retried by the caller.
- NotFound: no matching station / sensor / location. A valid negative answer.
- MalformedResponse: the collaborator answered, but not in the expected shape.
- Partial: not raised; attached to a result when some sub-fetches were dropped.
"""

from dataclasses import dataclass, field
from typing import List, Optional


class EnviroWatchError(Exception):
    """Base class for pipeline failures."""


class UpstreamUnavailable(EnviroWatchError):
    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = (body or "")[:500]


class NotFound(EnviroWatchError):
    def __init__(self, message: str, kind: str = "station"):
        super().__init__(message)
        self.kind = kind  # "station" | "sensor" | "location"


class MalformedResponse(EnviroWatchError):
    pass


@dataclass
class Partial:
    """Sub-fetches dropped from an otherwise successful result."""
    dropped: List[str] = field(default_factory=list)

    def add(self, what: str, reason: str):
        self.dropped.append(f"{what}: {reason}")

    def __bool__(self) -> bool:
        return bool(self.dropped)
