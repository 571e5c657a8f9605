from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, settings
import models  # noqa: F401  registers tables on Base.metadata
from api import clubs, members, notes, rounds, recommendations

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 在應用啟動時建立資料庫表
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Consensus Club API",
    description="Recommend, vote, complete: round lifecycle for clubs",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(clubs.router)
app.include_router(members.router)
app.include_router(rounds.router)
app.include_router(recommendations.router)
app.include_router(notes.router)


@app.get("/")
def root():
    return {"message": "Consensus Club API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
