import os
from fastapi import APIRouter, Depends, UploadFile, File, HTTPException
from typing import Optional
from app.dependencies import get_files_repo
from app.settings import settings
from domain.schemas import UploadResponse
from infra.repositories.files_repository import FilesRepository

router = APIRouter()


@router.post("/upload", response_model=UploadResponse)
async def upload(cv: Optional[UploadFile] = File(default=None),
                 project: Optional[UploadFile] = File(default=None),
                 files_repo: FilesRepository = Depends(get_files_repo)) -> UploadResponse:
    if not cv and not project:
        raise HTTPException(
            status_code=400, detail="Upload at least one file: 'cv' or 'project'")
    os.makedirs(settings.STORAGE_DIR, exist_ok=True)
    resp = UploadResponse()

    async def save_one(f: UploadFile, ftype: str) -> str:
        fid = files_repo.new_file_id()
        name = f.filename or "uploaded.pdf"
        ext = os.path.splitext(name)[1] or ".pdf"
        path = os.path.join(settings.STORAGE_DIR, f"{fid}{ext}")
        content = await f.read()
        with open(path, "wb") as out:
            out.write(content)
        return files_repo.save(ftype=ftype, path=path, name=name, file_id=fid)

    if cv:
        resp.cv_id = await save_one(cv, "cv")
    if project:
        resp.project_id = await save_one(project, "project")
    return resp
