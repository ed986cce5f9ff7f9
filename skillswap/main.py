import logging
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from .api.v1.api import build_router
from .core.config import get_settings
from .core.exceptions import CredentialsError
from .core.security import decode_access_token

# Load environment variables
load_dotenv()

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("skillswap")

# Paths that can be called without a bearer token
PUBLIC_PATH_SUFFIXES = ("/dev-token", "/rating")
PUBLIC_PATH_PREFIXES = ("/api/v1/ratings/user/",)

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(f"Starting up {settings.app_name} in {settings.environment} environment")
    yield
    logger.info("Shutting down")

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed input as 400 with one entry per offending field."""
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", []) if part != "body"]
        errors.append({
            "field": ".".join(loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": errors}
    )

async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )

def _is_public(path: str) -> bool:
    if path in ("/", "/health"):
        return True
    return path.endswith(PUBLIC_PATH_SUFFIXES) or path.startswith(PUBLIC_PATH_PREFIXES)

async def require_bearer_token(request: Request, call_next):
    """
    Refuse protected API calls that carry no usable bearer token.

    Runs before the request body is parsed, so an unauthenticated caller gets
    401 even when the body is malformed. Revocation is checked later by the
    route dependency, which needs the store.
    """
    path = request.url.path
    if request.method == "OPTIONS" or not path.startswith(get_settings().api_v1_prefix) or _is_public(path):
        return await call_next(request)

    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    try:
        if scheme.lower() != "bearer" or not token.strip():
            raise CredentialsError("Access denied. No token provided.")
        decode_access_token(token.strip())
    except CredentialsError as e:
        return JSONResponse(status_code=e.status_code, content={"detail": e.detail}, headers=e.headers)

    return await call_next(request)

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="""
        API for the SkillSwap platform: request, accept, reject and cancel
        skill swaps between users, and rate the other participant once a
        swap has been accepted.

        ## Authentication

        Send the access token in the Authorization header as `Bearer your-token`.
        A missing, invalid, expired or revoked token always gives 401.
        """,
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
        swagger_ui_parameters={
            "persistAuthorization": True,
            "displayRequestDuration": True,
            "docExpansion": "none",
        }
    )

    # Registered before CORS so that 401 responses still carry CORS headers
    app.middleware("http")(require_bearer_token)

    # Configure CORS
    origins = list(dict.fromkeys([*settings.cors_origins, settings.frontend_url]))
    logger.info(f"CORS origins: {origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(build_router())

    @app.get("/")
    async def root():
        return {"message": f"Welcome to the {settings.app_name}", "environment": settings.environment}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "environment": settings.environment}

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "bearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Enter the token without the 'Bearer' prefix"
            }
        }

        # Apply security only to the paths that require authentication
        for path, operations in openapi_schema.get("paths", {}).items():
            if _is_public(path):
                continue

            for method in operations:
                if method != "parameters":
                    operations[method]["security"] = [{"bearerAuth": []}]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app

app = create_app()
