# src/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config import settings
from subscription.routes import router as subscription_router
from ical.routes import router as ical_router
from sharing.routes import router as sharing_router
from cashflow.routes import router as cashflow_router
from scheduler.tasks import start_scheduler, check_subscriptions

app = FastAPI(
    title="Tuknang Backend",
    description="Subscription lifecycle, iCal sync and shared calendar functions for the rental platform",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(subscription_router)
app.include_router(ical_router)
app.include_router(sharing_router)
app.include_router(cashflow_router)

@app.on_event("startup")
async def startup_event():
    """Run initial tasks on startup."""
    if not settings.ENABLE_SCHEDULER:
        return
    check_subscriptions()
    app.state.scheduler = start_scheduler()

@app.on_event("shutdown")
async def shutdown_event():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)

@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Welcome to Tuknang Backend!"}
