from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.fees.router import router as fees_router
from app.api.v1.finance.router import router as finance_router
from app.api.v1.invoices.router import router as invoices_router
from app.api.v1.payment_plans.router import router as payment_plans_router
from app.api.v1.payments.router import router as payments_router
from app.core.logging import setup_logging


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="School Billing Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fees_router)
    app.include_router(invoices_router)
    app.include_router(payments_router)
    app.include_router(payment_plans_router)
    app.include_router(finance_router)

    return app


app = create_app()
