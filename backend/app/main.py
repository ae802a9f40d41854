from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.db import engine, Base
from app.core.errors import register_error_handlers
from app.core.logging import configure_logging
from app.api.survey import router as survey_router
from app.api.questions import router as questions_router
from app.api.stats import router as stats_router
from app.api.answers import router as answers_router
from app.api.insights import router as insights_router
from app.api.exports import router as exports_router
from app.api.customers import router as customers_router

configure_logging()

app = FastAPI(title="Guest Feedback API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Create tables on startup
Base.metadata.create_all(bind=engine)

app.include_router(survey_router)
app.include_router(questions_router)
app.include_router(stats_router)
app.include_router(answers_router)
app.include_router(insights_router)
app.include_router(exports_router)
app.include_router(customers_router)

@app.get("/health")
def health():
    return {"ok": True}
