from fastapi import Request

from .config import Settings
from .session import AppSession
from .store.gateway import ShapeStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ShapeStore:
    return request.app.state.store


def get_session(request: Request) -> AppSession:
    return request.app.state.session
