"""
Startup Raise Investor Portal -- Application entry point.

Run with:
    uvicorn portal.main:app --reload

Then open http://localhost:8000 for the investor portal,
or http://localhost:8000/docs for the interactive Swagger UI.

This file:
  1. Configures logging
  2. Creates the FastAPI application
  3. Mounts the session API and the portal page
  4. Defines the health check endpoint

The KYC, accreditation, payment, issuance and document services are not
part of this app. They live behind RAISE_API_BASE and are reached through
portal.backend.client.
"""

import logging

from fastapi import FastAPI

from portal.backend.client import API_BASE
from portal.routes import page, session

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

# ---------------------------------------------------------------------------
# Create the FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Startup Raise Investor Portal",
    version="0.1.0",
    description=(
        "Demo investor workflow for a Reg D 506(c) raise: KYC, accreditation, "
        "crypto checkout, share issuance and a Compliance Pack.\n\n"
        "---\n\n"
        "## Workflow Endpoints\n\n"
        "| Endpoint | Purpose |\n"
        "|----------|--------|\n"
        "| `GET /v1/offering` | Issuer, offer, quotes and disclosures |\n"
        "| `GET /v1/session` | Current session with shares, asset amount and progress |\n"
        "| `PUT /v1/session/investor` | Update name, email, asset or amount |\n"
        "| `POST /v1/session/kyc` | Start KYC |\n"
        "| `POST /v1/session/accreditation` | Verify accredited status |\n"
        "| `POST /v1/session/checkout` | Pay, issue shares, generate the Compliance Pack |\n"
        "| `POST /v1/session/reset` | Start over |\n\n"
        "---\n\n"
        "**Status:** Demo -- every backend effect is simulated by the raise backend."
    ),
)

# ---------------------------------------------------------------------------
# Mount route modules
# ---------------------------------------------------------------------------

app.include_router(session.router)
app.include_router(page.router)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get(
    "/v1/health",
    summary="Health check",
    description="Returns the current status of the portal.",
    tags=["System"],
)
async def health():
    from portal.store import sessions

    return {
        "status": "healthy",
        "mode": "demo",
        "version": "0.1.0",
        "backend": API_BASE,
        "sessions_stored": len(sessions),
    }
