"""
FastAPI main application with routes.
"""

import json
import logging
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Header, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from keyrouter import AggregateFailure, KeyRouter, KeySourcer, NoCredentialsAvailable
from keyrouter import prompts
from keyrouter.config import AVAILABLE_MODELS, load_config

from .database import init_db, get_db
from .api_keys import APIKeyStore, SystemSettingsStore
from .crypto import SecretCipher

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

config = load_config()

logging.basicConfig(
    level=getattr(logging, config.log_level, logging.INFO),
    format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


# ============================================================================
# APP SETUP
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    logger.info("🚀 Key router starting up...")
    config.validate()
    init_db()
    logger.info(f"✅ Database initialized | Default models: {', '.join(config.default_models)}")
    yield
    logger.info("👋 Key router shutting down...")


app = FastAPI(
    title="Key Router",
    description="AI generation with API key rotation and model fallback",
    version="1.0.0",
    lifespan=lifespan
)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_cipher() -> SecretCipher:
    return SecretCipher(config.encryption_key)


def get_provider():
    from keyrouter.ai import GeminiProvider
    return GeminiProvider()


def get_key_store(db: Session = Depends(get_db), cipher: SecretCipher = Depends(get_cipher)) -> APIKeyStore:
    return APIKeyStore(db, cipher)


def get_settings_store(db: Session = Depends(get_db), cipher: SecretCipher = Depends(get_cipher)) -> SystemSettingsStore:
    return SystemSettingsStore(db, cipher)


def get_router(
    store: APIKeyStore = Depends(get_key_store),
    settings: SystemSettingsStore = Depends(get_settings_store),
    provider=Depends(get_provider),
) -> KeyRouter:
    sourcer = KeySourcer(store, system_config=settings)
    return KeyRouter(sourcer, provider, store, default_models=config.default_models)


# ============================================================================
# PYDANTIC MODELS
# ============================================================================

class ModelOverride(BaseModel):
    model: Optional[str] = None
    models: Optional[list[str]] = None


class GenerateRequest(ModelOverride):
    prompt: str = Field(..., min_length=1)


class DailyPlanRequest(ModelOverride):
    tasks: list[dict] = Field(default_factory=list)
    habits: list[dict] = Field(default_factory=list)
    today_stats: dict = Field(default_factory=dict)


class TasksRequest(ModelOverride):
    tasks: list[dict] = Field(default_factory=list)


class HabitsRequest(ModelOverride):
    habits: list[dict] = Field(default_factory=list)


class BreakdownRequest(ModelOverride):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None


class TransactionsRequest(ModelOverride):
    transactions: list[dict] = Field(default_factory=list)


class NoteRequest(ModelOverride):
    content: str = Field(..., min_length=1)


class KeyCreate(BaseModel):
    key: str = Field(..., min_length=10)
    name: Optional[str] = None


class GlobalKeyUpdate(BaseModel):
    key: Optional[str] = None


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _generate(
    router: KeyRouter,
    settings: SystemSettingsStore,
    prompt: str,
    user_id: Optional[str],
    body: Optional[ModelOverride] = None,
) -> str:
    """Route a prompt through the key router, mapping engine errors to HTTP."""
    if settings.is_maintenance_mode():
        raise HTTPException(status_code=503, detail="AI features are under maintenance")
    try:
        return router.generate(
            prompt,
            requester_id=user_id,
            models=body.models if body else None,
            model=body.model if body else None,
        )
    except NoCredentialsAvailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except AggregateFailure as e:
        raise HTTPException(status_code=502, detail=str(e))


def _parse_subtasks(text: str) -> list[str]:
    """Parse the breakdown JSON array, tolerating code fences and bullets."""
    cleaned = text.strip().removeprefix("```json").removeprefix("```").removesuffix("```").strip()
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]
    except json.JSONDecodeError:
        logger.debug("Breakdown response was not JSON, falling back to line parsing")
    return [line.strip().lstrip("-*0123456789. ").strip() for line in cleaned.splitlines() if line.strip()]


def _key_view(store: APIKeyStore, api_key) -> dict:
    return {
        "id": api_key.id,
        "name": api_key.name,
        "key": store.masked_key(api_key),
        "scope": api_key.scope,
        "status": api_key.status,
        "is_enabled": api_key.is_enabled,
        "usage_count": api_key.usage_count,
        "last_used_at": api_key.last_used_at.isoformat() if api_key.last_used_at else None,
        "last_error": api_key.last_error,
    }


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return user_id


# ============================================================================
# AI ROUTES
# ============================================================================

@app.post("/api/ai/generate")
def generate(
    body: GenerateRequest,
    x_user_id: Optional[str] = Header(None),
    router: KeyRouter = Depends(get_router),
    settings: SystemSettingsStore = Depends(get_settings_store),
):
    text = _generate(router, settings, body.prompt, x_user_id, body)
    return {"text": text}


@app.post("/api/ai/daily-plan")
def daily_plan(
    body: DailyPlanRequest,
    x_user_id: Optional[str] = Header(None),
    router: KeyRouter = Depends(get_router),
    settings: SystemSettingsStore = Depends(get_settings_store),
):
    prompt = prompts.build_daily_plan_prompt(body.tasks, body.habits, body.today_stats)
    return {"plan": _generate(router, settings, prompt, x_user_id, body)}


@app.post("/api/ai/task-suggestions")
def task_suggestions(
    body: TasksRequest,
    x_user_id: Optional[str] = Header(None),
    router: KeyRouter = Depends(get_router),
    settings: SystemSettingsStore = Depends(get_settings_store),
):
    prompt = prompts.build_task_suggestions_prompt(body.tasks)
    return {"suggestions": _generate(router, settings, prompt, x_user_id, body)}


@app.post("/api/ai/habit-insights")
def habit_insights(
    body: HabitsRequest,
    x_user_id: Optional[str] = Header(None),
    router: KeyRouter = Depends(get_router),
    settings: SystemSettingsStore = Depends(get_settings_store),
):
    prompt = prompts.build_habit_insights_prompt(body.habits)
    return {"insights": _generate(router, settings, prompt, x_user_id, body)}


@app.post("/api/ai/breakdown")
def task_breakdown(
    body: BreakdownRequest,
    x_user_id: Optional[str] = Header(None),
    router: KeyRouter = Depends(get_router),
    settings: SystemSettingsStore = Depends(get_settings_store),
):
    prompt = prompts.build_task_breakdown_prompt(body.title, body.description or "")
    text = _generate(router, settings, prompt, x_user_id, body)
    return {"subtasks": _parse_subtasks(text), "raw": text}


@app.post("/api/ai/finance-insights")
def finance_insights(
    body: TransactionsRequest,
    x_user_id: Optional[str] = Header(None),
    router: KeyRouter = Depends(get_router),
    settings: SystemSettingsStore = Depends(get_settings_store),
):
    prompt = prompts.build_finance_insights_prompt(body.transactions)
    return {"insights": _generate(router, settings, prompt, x_user_id, body)}


@app.post("/api/ai/summarize-note")
def summarize_note(
    body: NoteRequest,
    x_user_id: Optional[str] = Header(None),
    router: KeyRouter = Depends(get_router),
    settings: SystemSettingsStore = Depends(get_settings_store),
):
    prompt = prompts.build_note_summary_prompt(body.content)
    return {"summary": _generate(router, settings, prompt, x_user_id, body)}


@app.get("/api/models")
async def list_models():
    return {
        "default": config.default_models,
        "available": [
            {"id": m.id, "name": m.display_name, "description": m.description, "recommended": m.recommended}
            for m in AVAILABLE_MODELS
        ],
    }


# ============================================================================
# KEY MANAGEMENT ROUTES
# ============================================================================

@app.get("/api/keys")
async def list_keys(x_user_id: Optional[str] = Header(None), store: APIKeyStore = Depends(get_key_store)):
    user_id = _require_user(x_user_id)
    return [_key_view(store, k) for k in store.list_keys(user_id)]


@app.post("/api/keys", status_code=201)
async def add_key(body: KeyCreate, x_user_id: Optional[str] = Header(None), store: APIKeyStore = Depends(get_key_store)):
    user_id = _require_user(x_user_id)
    api_key = store.add_key(body.key.strip(), body.name, owner_id=user_id)
    return _key_view(store, api_key)


@app.post("/api/keys/{key_id}/toggle")
async def toggle_key(key_id: int, x_user_id: Optional[str] = Header(None), store: APIKeyStore = Depends(get_key_store)):
    user_id = _require_user(x_user_id)
    api_key = store.toggle_key(key_id, owner_id=user_id)
    if not api_key:
        raise HTTPException(status_code=404, detail="Key not found")
    return _key_view(store, api_key)


@app.delete("/api/keys/{key_id}")
async def delete_key(key_id: int, x_user_id: Optional[str] = Header(None), store: APIKeyStore = Depends(get_key_store)):
    user_id = _require_user(x_user_id)
    if store.delete_key(key_id, owner_id=user_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Key not found")


@app.get("/api/status")
async def key_status(store: APIKeyStore = Depends(get_key_store)):
    status = store.get_status()
    status["has_fallback_key"] = bool(config.fallback_api_key)
    return status


# ============================================================================
# ADMIN ROUTES
# ============================================================================

@app.get("/api/admin/settings")
async def get_system_settings(settings: SystemSettingsStore = Depends(get_settings_store)):
    return settings.get_settings()


@app.put("/api/admin/ai-key")
async def update_global_key(body: GlobalKeyUpdate, settings: SystemSettingsStore = Depends(get_settings_store)):
    settings.set_master_secret((body.key or "").strip() or None)
    result = settings.get_settings()
    return {"message": "Global AI Key updated successfully", "has_global_key": result["has_global_key"]}


@app.put("/api/admin/maintenance")
async def toggle_maintenance(settings: SystemSettingsStore = Depends(get_settings_store)):
    enabled = settings.toggle_maintenance()
    return {
        "message": f"Maintenance Mode {'Enabled' if enabled else 'Disabled'}",
        "is_maintenance_mode": enabled,
    }
