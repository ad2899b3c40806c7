import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import settings
from routes.analysis_routes import router as analysis_router
from routes.session_routes import router as session_router
from routes.working_memory_routes import router as working_memory_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# -----------------------------
app = FastAPI(
    title="Cognitive Memory Assessment Backend",
    description="API for visual memory, working memory and sustained attention assessment, with memory-capacity analysis",
    version="1.0.0"
)

# --- REGISTER ROUTERS ---
app.include_router(session_router)
app.include_router(working_memory_router)
app.include_router(analysis_router)

# --- CORS MIDDLEWARE ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# ROOT ENDPOINTS
@app.get("/")
def read_root():
    return {"message": "Welcome to the Cognitive Memory Assessment Backend! Endpoints available for sessions, working memory and analysis.", "docs": "/docs"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}
