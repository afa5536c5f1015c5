import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coachdesk.core.config import get_settings
from coachdesk.routes import auth, leads, tables, views
from coachdesk.services.table_state import TableStateRegistry

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.table_states = TableStateRegistry()

app.include_router(auth.router)
app.include_router(views.router)
app.include_router(tables.router)
app.include_router(leads.router)


@app.get("/health")
def health():
    return {"status": "ok"}
