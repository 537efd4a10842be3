import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field

from ai_questions import QUESTION_TEMPLATES, generate_question, simulated_delay
from config import Settings, settings
from database import KeyValueStorage, db, storage_from_settings
from schemas import ALL_CATEGORIES, CATEGORIES, Category, ChainType, Record, User, UserRead
from store import ContentStore

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 2
MAX_AVATAR_BYTES = 5 * 1024 * 1024

router = APIRouter()


# ---------- Utilities ----------

def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_user(store: ContentStore = Depends(get_store)) -> User:
    user = store.get_current_user()
    if not user:
        raise HTTPException(status_code=401, detail="Not logged in")
    return user


def serialize(record: Record) -> dict:
    # never hand the stored password back out
    if isinstance(record, User):
        return UserRead.model_validate(record.model_dump()).dump()
    return record.dump()


def check_category(category: Optional[str]) -> None:
    if category and category != ALL_CATEGORIES and category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")


def valid_avatar(avatar: str) -> bool:
    if avatar.startswith(("http://", "https://")):
        return True
    if not avatar.startswith("data:image/"):
        return False
    _, _, payload = avatar.partition(",")
    # base64 carries 3 bytes per 4 characters
    return len(payload) * 3 // 4 <= MAX_AVATAR_BYTES


# ---------- Schemas (API layer) ----------

class QuestionCreate(Record):
    title: str = Field(..., min_length=1, max_length=500)
    category: Category
    author: Optional[str] = None


class ChainItemCreate(Record):
    text: str = Field(..., min_length=1, max_length=300)
    author: Optional[str] = None
    type: Optional[ChainType] = None


class RegisterRequest(Record):
    username: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""


class LoginRequest(Record):
    email: str
    password: str


class ProfileUpdate(Record):
    display_name: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None


# ---------- Basic ----------

@router.get("/")
def root():
    return {"name": "Kkojil API", "status": "ok"}


@router.get("/test")
def test_storage(store: ContentStore = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "storage": "❌ Not Available",
        "storage_backend": store.storage.name,
        "keys": [],
        "database": "❌ Not Available",
        "collections": [],
    }
    try:
        response["keys"] = store.storage.keys()
        response["storage"] = "✅ Connected"
    except Exception as e:
        response["storage"] = f"⚠️ {str(e)[:80]}"
    try:
        if db is not None:
            response["collections"] = db.list_collection_names()
            response["database"] = "✅ Connected"
    except Exception as e:
        response["database"] = f"⚠️ {str(e)[:80]}"
    return response


# ---------- Questions ----------

@router.get("/api/questions")
def list_questions(
    q: Optional[str] = None,
    category: Optional[str] = None,
    store: ContentStore = Depends(get_store),
):
    check_category(category)
    return [serialize(x) for x in store.filter_questions(q, category)]


@router.post("/api/questions", status_code=201)
def create_question(data: QuestionCreate, store: ContentStore = Depends(get_store)):
    title = data.title.strip()
    if not title:
        raise HTTPException(400, "Question title is required")
    author = (data.author or "").strip()
    if not author:
        user = store.get_current_user()
        if not user:
            raise HTTPException(400, "Author is required when not logged in")
        author = user.display_name
    return serialize(store.add_question(title, data.category, author))


@router.get("/api/questions/{question_id}")
def get_question(question_id: int, store: ContentStore = Depends(get_store)):
    question = store.get_question(question_id)
    if not question:
        raise HTTPException(404, "Question not found")
    return {
        "question": serialize(question),
        "chain": [serialize(c) for c in store.list_chain_items(question_id)],
    }


# ---------- Chain ----------

@router.get("/api/questions/{question_id}/chain")
def list_chain(question_id: int, store: ContentStore = Depends(get_store)):
    if not store.get_question(question_id):
        raise HTTPException(404, "Question not found")
    return [serialize(c) for c in store.list_chain_items(question_id)]


@router.post("/api/questions/{question_id}/chain", status_code=201)
def add_chain_item(question_id: int, payload: ChainItemCreate, store: ContentStore = Depends(get_store)):
    if not store.get_question(question_id):
        raise HTTPException(404, "Question not found")
    text = payload.text.strip()
    if not text:
        raise HTTPException(400, "Text is required")
    author = (payload.author or "").strip()
    if not author:
        user = store.get_current_user()
        if not user:
            raise HTTPException(400, "Author is required when not logged in")
        author = user.display_name
    return serialize(store.append_chain_item(question_id, text, author, type=payload.type))


# ---------- Sidebar views ----------

@router.get("/api/trending")
def trending(store: ContentStore = Depends(get_store)):
    return [serialize(x) for x in store.trending_questions()]


@router.get("/api/categories")
def categories(store: ContentStore = Depends(get_store)):
    stats = store.category_stats()
    return {"categories": [serialize(s) for s in stats], "total": sum(s.count for s in stats)}


@router.get("/api/recent")
def recent(store: ContentStore = Depends(get_store)):
    return [serialize(x) for x in store.recent_content()]


# ---------- AI suggestions ----------

@router.post("/api/ai-question")
async def ai_question(request: Request, cfg: Settings = Depends(get_settings)):
    try:
        body = await request.json()
        category = body.get("category") if isinstance(body, dict) else None
        if not isinstance(category, str) or category not in QUESTION_TEMPLATES:
            return JSONResponse({"error": "Invalid category"}, status_code=400)

        question = generate_question(category)
        await asyncio.sleep(simulated_delay(cfg))
        if await request.is_disconnected():
            logger.info("Client left before AI question was ready; dropping response")
            return JSONResponse({"error": "Client disconnected"}, status_code=499)
        return {"question": question}
    except Exception:
        logger.exception("AI question generation error")
        return JSONResponse({"error": "Failed to generate question"}, status_code=500)


# ---------- Auth ----------

@router.post("/api/auth/register", status_code=201)
def register(payload: RegisterRequest, store: ContentStore = Depends(get_store)):
    username = payload.username.strip()
    email = payload.email.strip()
    if not username or not email or not payload.password or not payload.confirm_password:
        raise HTTPException(400, "Please fill in all required fields")
    if payload.password != payload.confirm_password:
        raise HTTPException(400, "Passwords do not match")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(400, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = store.register_user(username=username, email=email, password=payload.password)
    if not user:
        conflict = store.registration_conflict(email, username)
        detail = "Email already in use" if conflict == "email" else "Username already taken"
        raise HTTPException(409, detail)
    return serialize(user)


@router.post("/api/auth/login")
def login(payload: LoginRequest, store: ContentStore = Depends(get_store)):
    user = store.login_user(payload.email.strip(), payload.password)
    if not user:
        raise HTTPException(401, "Invalid email or password")
    return serialize(user)


@router.post("/api/auth/logout")
def logout(store: ContentStore = Depends(get_store)):
    store.logout_user()
    return {"ok": True}


@router.get("/api/auth/me")
def me(user: User = Depends(get_session_user)):
    return serialize(user)


@router.get("/api/users/check-username")
def check_username(username: str, store: ContentStore = Depends(get_store)):
    username = username.strip()
    available = len(username) >= MIN_USERNAME_LENGTH and store.check_username_availability(username)
    return {"username": username, "available": available}


# ---------- Profile ----------

@router.get("/api/profile")
def get_profile(user: User = Depends(get_session_user)):
    return serialize(user)


@router.get("/api/profile/activity")
def get_activity(user: User = Depends(get_session_user), store: ContentStore = Depends(get_store)):
    questions, entries = store.user_activity(user.display_name)
    return {
        "questions": [serialize(q) for q in questions],
        "chainItems": [serialize(c) for c in entries],
    }


@router.put("/api/profile")
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_session_user),
    store: ContentStore = Depends(get_store),
):
    changes = {}
    if payload.display_name is not None:
        display_name = payload.display_name.strip()
        if not display_name:
            raise HTTPException(400, "Display name is required")
        changes["display_name"] = display_name
    if payload.bio is not None:
        changes["bio"] = payload.bio.strip() or None
    if payload.avatar is not None:
        if payload.avatar and not valid_avatar(payload.avatar):
            raise HTTPException(400, "Avatar must be an image data URI under 5MB or an http(s) URL")
        changes["avatar"] = payload.avatar or None

    updated = user.model_copy(update=changes)
    store.update_user(updated)
    return serialize(updated)


# ---------- App ----------

def create_app(cfg: Settings = settings, storage: Optional[KeyValueStorage] = None) -> FastAPI:
    app = FastAPI(title="Kkojil API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = cfg
    app.state.store = ContentStore(storage if storage is not None else storage_from_settings(cfg))
    if cfg.SEED_DEFAULT_DATA:
        try:
            app.state.store.initialize_default_data()
        except Exception:
            logger.exception("Seeding default questions failed")
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
