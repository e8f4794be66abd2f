# app/core/config.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .settings import settings

# El editor lee/manda el token optimista y delivery revalida con ETag / Last-Modified
_EXPOSED_HEADERS = ["ETag", "Last-Modified", "Cache-Control"]


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG and settings.ENV != "prod",
    )

    origins = settings.CORS_ORIGINS
    if not origins:
        return app

    # credenciales + "*" no es válido en CORS: el comodín gana y se desactivan
    wildcard = "*" in origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else origins,
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "If-Match", "If-None-Match", "If-Modified-Since"],
        expose_headers=_EXPOSED_HEADERS,
    )
    return app
