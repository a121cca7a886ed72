# backend/app.py
import os
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import crud
from auth import RequestContext, authenticate, create_access_token, hash_password, require_admin, verify_password
from db import get_db, init_db
from errors import UploadError
from schemas import AgentCreate, AgentOut, AgentUpdate, LoginPayload, RegisterPayload, UploadResponse, UserOut
from upload import process_upload, save_upload

# -----------------------------------------------------------------------------
# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_USER_ROLE = os.getenv("DEFAULT_USER_ROLE", "admin")

# -----------------------------------------------------------------------------
# CORS
DEFAULT_CORS = "http://localhost:3000"
_origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS)
allow_origins = [o.strip() for o in _origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Agent Task Distributor API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# Error responses: {"success": false, "message": ..., "errors": [...]}

def _fail(status_code: int, message: str, errors: Optional[list] = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)

@app.exception_handler(UploadError)
async def upload_error_handler(request: Request, exc: UploadError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _fail(exc.status_code, str(exc.detail))

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())[1:]) or "body"
        errors.append(f"{field}: {err.get('msg')}")
    return _fail(400, "Validation error", errors)

# -----------------------------------------------------------------------------
@app.get("/api/health")
def health():
    return {"success": True, "ok": True}

# -----------------------------------------------------------------------------
# Auth
def _auth_response(user, message: str) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "token": create_access_token(user.id),
        "user": UserOut.model_validate(user).model_dump(),
    }

@app.post("/api/auth/register", status_code=201)
def register(body: RegisterPayload, db: Session = Depends(get_db)):
    if crud.get_user_by_email(db, body.email):
        return _fail(400, "User with this email already exists")
    try:
        user = crud.create_user(db, body.name, body.email, hash_password(body.password), DEFAULT_USER_ROLE)
        db.commit()
    except IntegrityError:
        db.rollback()
        return _fail(400, "User with this email already exists")
    logger.info("Registered user %s (%s)", user.email, user.role)
    return _auth_response(user, "User registered successfully")

@app.post("/api/auth/login")
def login(body: LoginPayload, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        return _fail(401, "Invalid email or password")
    return _auth_response(user, "Login successful")

@app.get("/api/auth/me")
def me(ctx: RequestContext = Depends(authenticate)):
    return {"success": True, "user": {"id": ctx.user_id, "name": ctx.name, "email": ctx.email, "role": ctx.role}}

# -----------------------------------------------------------------------------
# Agents (admin only)
def _agent_out(agent) -> Dict[str, Any]:
    return AgentOut.model_validate(agent).model_dump()

@app.post("/api/agents", status_code=201)
def create_agent(body: AgentCreate, ctx: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
    if crud.get_agent_by_email(db, body.email):
        return _fail(400, "Agent with this email already exists")
    try:
        agent = crud.create_agent(db, body.name, body.email, body.mobile, hash_password(body.password))
        db.commit()
    except IntegrityError:
        db.rollback()
        return _fail(400, "Agent with this email already exists")
    logger.info("Agent %s created by %s", agent.email, ctx.email)
    return {"success": True, "message": "Agent created successfully", "agent": _agent_out(agent)}

@app.get("/api/agents")
def list_agents(ctx: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
    agents = [_agent_out(a) for a in crud.list_agents(db)]
    return {"success": True, "count": len(agents), "agents": agents}

@app.get("/api/agents/{agent_id}")
def get_agent(agent_id: int, ctx: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
    agent = crud.get_agent(db, agent_id)
    if agent is None:
        return _fail(404, "Agent not found")
    return {"success": True, "agent": _agent_out(agent)}

@app.put("/api/agents/{agent_id}")
def update_agent(agent_id: int, body: AgentUpdate,
                 ctx: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
    agent = crud.get_agent(db, agent_id)
    if agent is None:
        return _fail(404, "Agent not found")
    if body.email:
        other = crud.get_agent_by_email(db, body.email)
        if other is not None and other.id != agent.id:
            return _fail(400, "Agent with this email already exists")
    try:
        crud.update_agent(db, agent, name=body.name, email=body.email, mobile=body.mobile)
        db.commit()
    except IntegrityError:
        db.rollback()
        return _fail(400, "Agent with this email already exists")
    logger.info("Agent %s updated by %s", agent.id, ctx.email)
    return {"success": True, "message": "Agent updated successfully", "agent": _agent_out(agent)}

@app.delete("/api/agents/{agent_id}")
def delete_agent(agent_id: int, ctx: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
    agent = crud.get_agent(db, agent_id)
    if agent is None:
        return _fail(404, "Agent not found")
    crud.delete_agent(db, agent)
    db.commit()
    logger.info("Agent %s deleted by %s", agent_id, ctx.email)
    return {"success": True, "message": "Agent deleted successfully"}

# -----------------------------------------------------------------------------
# Upload
@app.post("/api/upload", response_model=UploadResponse)
def upload_file(
    file: Optional[UploadFile] = File(None),
    ctx: RequestContext = Depends(authenticate),
    db: Session = Depends(get_db),
):
    if file is None or not file.filename:
        return _fail(400, "Please select a file to upload")

    logger.info("Upload %r received from %s", file.filename, ctx.email)
    path = save_upload(file.file, file.filename)
    summary = process_upload(db, path, file.filename)
    return {
        "success": True,
        "message": f"Successfully uploaded and distributed {summary['total_records']} tasks",
        "summary": summary,
    }

@app.get("/api/upload/tasks")
def get_tasks(ctx: RequestContext = Depends(authenticate), db: Session = Depends(get_db)):
    tasks = crud.list_tasks(db)
    return {"success": True, "count": len(tasks), "tasks": tasks}

@app.get("/api/upload/tasks/by-agent")
def get_tasks_by_agent(ctx: RequestContext = Depends(authenticate), db: Session = Depends(get_db)):
    return {"success": True, "distribution": crud.aggregate_by_agent(db)}
