import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from weave_settlement import dependencies
from weave_settlement.errors import ValidationError, WeaveError
from weave_settlement.load_secrets import log_level
from weave_settlement.routers import auth, restapi

logging.basicConfig(level=log_level)
logging.getLogger("aiosqlite").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


def _provider(app: FastAPI, dependency):
    return app.dependency_overrides.get(dependency, dependency)


@asynccontextmanager
async def lifespan(app):
    """Load the settlement authority and create the challenge/session tables.
    This function is called to start the server; a missing authority key aborts start-up.
    """
    authority = _provider(app, dependencies.get_authority)()
    logging.info(f"Settlement authority: {authority.pubkey()}")

    await _provider(app, dependencies.get_store)().create_tables()
    try:
        yield
    finally:
        logging.info("Stop Server")


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.include_router(auth.auth_router)
app.include_router(restapi.rest_router)


@app.exception_handler(WeaveError)
async def weave_error_handler(request: Request, exc: WeaveError):
    if exc.status_code >= 500:
        logging.error(f"{request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=ValidationError.status_code,
        content={"error": f"Invalid request body: {detail}"},
    )


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8080)
