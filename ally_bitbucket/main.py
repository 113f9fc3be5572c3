from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .config import CORS_ORIGINS
from .routes import router as bitbucket_router


def create_app(cors_origins: Optional[List[str]] = None) -> FastAPI:
    """Build the FastAPI app serving the Bitbucket login routes."""
    app = FastAPI(
        title="Bitbucket Ally",
        description="Bitbucket OAuth2 login returning normalized users",
        version="0.1.0",
    )

    # Add CORS middleware for frontend connections
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS if cors_origins is None else cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(bitbucket_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
