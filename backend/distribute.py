from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence

from errors import NoWorkersError
from import_csv import ValidatedRecord

# Only the oldest agents take part in a distribution run
MAX_AGENTS_PER_UPLOAD = 5


@dataclass(frozen=True)
class AssignedRecord:
    first_name: str
    phone: str
    notes: str
    agent_id: int


def available_agents(agents: Sequence, limit: int = MAX_AGENTS_PER_UPLOAD) -> list:
    """`agents` must already be ordered by creation time."""
    return list(agents[:limit])


def distribute_records(records: Sequence[ValidatedRecord], agents: Sequence) -> List[AssignedRecord]:
    """Round-robin: record i goes to available[i % len(available)]."""
    available = available_agents(agents)
    if not available:
        raise NoWorkersError()

    out: List[AssignedRecord] = []
    for i, rec in enumerate(records):
        agent = available[i % len(available)]
        out.append(AssignedRecord(first_name=rec.first_name, phone=rec.phone, notes=rec.notes, agent_id=agent.id))
    return out
