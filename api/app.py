"""FastAPI server for the Helper chat proxy and directory lookup"""

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes.chat import chat_error_response
from api.routes.chat import router as chat_router
from api.routes.directory import router as directory_router
from utils.logging_config import get_logger, initialize_logging

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)

CORS_ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": ", ".join(CORS_ALLOWED_HEADERS),
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def create_app() -> FastAPI:
    app = FastAPI(title="Helper API", version="1.0.0")

    # Browser clients call the endpoints from any origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Added last so it runs before CORSMiddleware: every preflight gets an empty 200
    @app.middleware("http")
    async def answer_preflight(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=PREFLIGHT_HEADERS)
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed bodies are reported as endpoint failures"""
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        if request.url.path.endswith("/chat-gemini"):
            return chat_error_response("Invalid request body")
        return JSONResponse(status_code=500, content={"error": "Invalid request body"})

    app.include_router(chat_router)
    app.include_router(directory_router)
    return app


app = create_app()


def main():
    import uvicorn
    initialize_logging()
    uvicorn.run("api.app:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
