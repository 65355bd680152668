from fastapi import APIRouter
from api.endpoints import evaluate, health, result, upload

api_router = APIRouter()
for module, tag in ((health, "health"), (upload, "upload"),
                    (evaluate, "evaluate"), (result, "result")):
    api_router.include_router(module.router, tags=[tag])
