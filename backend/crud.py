from __future__ import annotations
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session
from models import Agent, Task, User

# keeps IN (...) lists well under driver parameter limits
ID_CHUNK = 500

# -----------------------------------------------------------------------------
# Users

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(select(User).where(User.email == email.strip().lower())).scalar_one_or_none()

def create_user(db: Session, name: str, email: str, password_hash: str, role: str) -> User:
    user = User(name=name.strip(), email=email.strip().lower(), password_hash=password_hash, role=role)
    db.add(user)
    db.flush()
    return user

# -----------------------------------------------------------------------------
# Agents

def agent_to_dict(a: Agent) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "email": a.email,
        "mobile": a.mobile,
        "created_at": a.created_at,
        "updated_at": a.updated_at,
    }

def find_agents_ordered_by_creation(db: Session) -> List[Agent]:
    return list(db.execute(select(Agent).order_by(Agent.created_at.asc(), Agent.id.asc())).scalars())

def list_agents(db: Session) -> List[Agent]:
    return list(db.execute(select(Agent).order_by(Agent.created_at.desc(), Agent.id.desc())).scalars())

def get_agent(db: Session, agent_id: int) -> Optional[Agent]:
    return db.get(Agent, agent_id)

def get_agent_by_email(db: Session, email: str) -> Optional[Agent]:
    return db.execute(select(Agent).where(Agent.email == email.strip().lower())).scalar_one_or_none()

def create_agent(db: Session, name: str, email: str, mobile: str, password_hash: str) -> Agent:
    agent = Agent(name=name.strip(), email=email.strip().lower(), mobile=mobile.strip(), password_hash=password_hash)
    db.add(agent)
    db.flush()
    return agent

def update_agent(db: Session, agent: Agent, name: Optional[str] = None,
                 email: Optional[str] = None, mobile: Optional[str] = None) -> Agent:
    if name:
        agent.name = name.strip()
    if email:
        agent.email = email.strip().lower()
    if mobile:
        agent.mobile = mobile.strip()
    db.flush()
    return agent

def delete_agent(db: Session, agent: Agent) -> None:
    db.delete(agent)
    db.flush()

# -----------------------------------------------------------------------------
# Tasks

def bulk_insert_tasks(db: Session, assigned: Iterable) -> List[int]:
    tasks = [
        Task(first_name=a.first_name, phone=a.phone, notes=a.notes, agent_id=a.agent_id)
        for a in assigned
    ]
    if not tasks:
        return []
    db.add_all(tasks)
    db.flush()  # get task ids
    return [t.id for t in tasks]

def task_to_dict(t: Task) -> dict:
    return {"id": t.id, "first_name": t.first_name, "phone": t.phone, "notes": t.notes, "created_at": t.created_at}

def list_tasks(db: Session) -> List[dict]:
    res = db.execute(
        select(Task, Agent).join(Agent, Task.agent_id == Agent.id)
        .order_by(Task.created_at.desc(), Task.id.desc())
    ).all()
    out = []
    for t, a in res:
        rec = task_to_dict(t)
        rec["agent"] = {"id": a.id, "name": a.name, "email": a.email, "mobile": a.mobile}
        out.append(rec)
    return out

def _task_rows(db: Session, task_ids: Optional[Sequence[int]]):
    base = select(Task, Agent).join(Agent, Task.agent_id == Agent.id).order_by(Task.id.asc())
    if task_ids is None:
        yield from db.execute(base).all()
        return
    ids = list(task_ids)
    for i in range(0, len(ids), ID_CHUNK):
        yield from db.execute(base.where(Task.id.in_(ids[i:i + ID_CHUNK]))).all()

def aggregate_by_agent(db: Session, task_ids: Optional[Sequence[int]] = None,
                       sample_size: Optional[int] = None) -> List[dict]:
    """Group tasks by assigned agent, sorted by agent name.

    `task_ids=None` covers every task. `sample_size` caps the number of
    sample records returned per agent (None = all of them).
    """
    groups: dict = {}
    for t, a in _task_rows(db, task_ids):
        g = groups.get(a.id)
        if g is None:
            g = groups[a.id] = {
                "agent_id": a.id,
                "agent_name": a.name,
                "agent_email": a.email,
                "agent_mobile": a.mobile,
                "record_count": 0,
                "sample_records": [],
            }
        g["record_count"] += 1
        if sample_size is None or len(g["sample_records"]) < sample_size:
            g["sample_records"].append(task_to_dict(t))
    return sorted(groups.values(), key=lambda g: (g["agent_name"], g["agent_id"]))
