"""
Finance Console — FastAPI application.

This is the entry point for the application.
All routers are registered here.
"""

from fastapi import FastAPI

from finance_console.config import configure_logging, get_settings
from finance_console.api.audit import router as audit_router
from finance_console.api.collection_agencies import router as agencies_router
from finance_console.api.employees import router as employees_router
from finance_console.api.garnishments import router as garnishments_router
from finance_console.api.health import router as health_router
from finance_console.api.loans import router as loans_router
from finance_console.api.petty_cash import router as petty_cash_router

settings = get_settings()
configure_logging(settings)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Petty cash, employee loans and wage garnishment tracking",
)

# Register routers
app.include_router(health_router)
app.include_router(employees_router)
app.include_router(garnishments_router)
app.include_router(agencies_router)
app.include_router(loans_router)
app.include_router(petty_cash_router)
app.include_router(audit_router)
