from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutorledger.api.v1.branches.router import router as branches_router
from tutorledger.api.v1.payments.router import router as payments_router
from tutorledger.api.v1.revenue.router import router as revenue_router
from tutorledger.api.v1.students.router import router as students_router
from tutorledger.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Tutoring Center Payments")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(branches_router)
    app.include_router(students_router)
    app.include_router(payments_router)
    app.include_router(revenue_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
