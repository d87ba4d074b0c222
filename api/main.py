from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from admin import router as admin_router
from analytics import router as analytics_router
from audit import router as audit_router
from auth import router as auth_router
from catalog import router as catalog_router
from checkout import router as checkout_router
from core import db, middleware, ratelimit, schema
from core.logging_config import configure_logging
from core.settings import auto_init_schema, cors_origins
from health import router as health_router
from insights import router as insights_router
from leads import router as leads_router
from monitoring import router as monitoring_router
from orders import router as orders_router

configure_logging()


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        if auto_init_schema():
            await schema.ensure_schema()
        yield
    finally:
        await db.close_pool()


app = FastAPI(title="Zenith Capital Advisors API", lifespan=lifespan)

# Allow the marketing site to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
middleware.install(app)
ratelimit.install(app)

app.include_router(health_router.router, tags=["health"])
app.include_router(auth_router.router, tags=["auth"])
app.include_router(catalog_router.router, tags=["models"])
app.include_router(insights_router.router, tags=["insights"])
app.include_router(leads_router.router, tags=["leads"])
app.include_router(checkout_router.router, tags=["checkout"])
app.include_router(orders_router.router, tags=["orders"])
app.include_router(analytics_router.router, tags=["analytics"])
app.include_router(monitoring_router.router, tags=["monitoring"])
app.include_router(audit_router.router, tags=["security"])
app.include_router(admin_router.router, tags=["admin"])
