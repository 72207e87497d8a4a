"""
Execution Diagnostics

Non-fatal warnings collected while a query runs. Data-shape problems never
abort the pipeline; they are recorded here as ``{stage, message}`` entries
and mirrored to the module logger, tagged with the query id.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)


class DiagnosticStage(str, Enum):
    """Pipeline stage that produced a diagnostic."""
    JOIN = "join"
    FILTER = "filter"
    SUBQUERY = "subquery"
    AGGREGATE = "aggregate"
    HAVING = "having"
    CALCULATE = "calculate"
    STORE = "store"


@dataclass(frozen=True)
class Diagnostic:
    """A single non-fatal warning."""
    stage: str
    message: str


def new_query_id() -> str:
    """Short id used to correlate log lines of one execute() call."""
    return uuid.uuid4().hex[:8]


@dataclass
class DiagnosticLog:
    """
    Ordered collection of diagnostics for one query execution.

    Identical (stage, message) pairs are recorded once, so a problem hit on
    every row of a table shows up as a single entry.
    """
    query_id: str = field(default_factory=new_query_id)
    entries: List[Diagnostic] = field(default_factory=list)

    def add(self, stage: str, message: str) -> Diagnostic:
        stage_name = stage.value if isinstance(stage, DiagnosticStage) else stage
        diagnostic = Diagnostic(stage=stage_name, message=message)
        if diagnostic in self.entries:
            return diagnostic
        self.entries.append(diagnostic)
        logger.warning(f"{stage_name}: {message}", extra={"query_id": self.query_id})
        return diagnostic

    def messages(self, stage: Optional[str] = None) -> List[str]:
        """Messages in recording order, optionally restricted to one stage."""
        if isinstance(stage, DiagnosticStage):
            stage = stage.value
        return [d.message for d in self.entries if stage is None or d.stage == stage]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)
