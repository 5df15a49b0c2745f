from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leadhub import __version__
from leadhub.config import settings
from leadhub.database import init_db
from leadhub.routes import cancellations, health, leads, partners

# Import observability components
from leadhub.obs.logging import setup_logging, get_logger
from leadhub.obs.middleware import ObservabilityMiddleware
from leadhub.obs.errors import register_error_handlers
from leadhub.middleware.actor import ActorContextMiddleware

# Setup observability
setup_logging()

logger = get_logger(__name__)

app = FastAPI(title="Leadhub Lead Workflow API", version=__version__)

# Register error handlers
register_error_handlers(app)

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Observability middleware (must be early in the stack)
app.add_middleware(ObservabilityMiddleware)

# Actor context middleware
app.add_middleware(ActorContextMiddleware)

app.include_router(health.router)  # Health checks first
app.include_router(leads.router)  # Eligibility, assignment, accept/reject, completion
app.include_router(cancellations.router)  # Cancellation requests and decisions
app.include_router(partners.router)  # Partner capacity


@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info(f"Leadhub started in {settings.ENVIRONMENT} mode")


if __name__ == "__main__":
    import os

    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
