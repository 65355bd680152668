import os
import uuid
from typing import Optional
from domain.errors import DocumentMissing
from domain.schemas import DocumentRef
from infra.db.session import SessionLocal
from infra.db.models import FileRecord

class FilesRepository:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    @staticmethod
    def new_file_id() -> str:
        return uuid.uuid4().hex

    def save(self, ftype: str, path: str, name: str, file_id: Optional[str] = None) -> str:
        fid = file_id or self.new_file_id()
        with self._session_factory() as s:
            s.add(FileRecord(id=fid, type=ftype, path=path, name=name))
            s.commit()
        return fid

    def exists(self, file_id: str) -> bool:
        with self._session_factory() as s:
            return s.get(FileRecord, file_id) is not None

    def get(self, file_id: str) -> Optional[DocumentRef]:
        with self._session_factory() as s:
            rec = s.get(FileRecord, file_id)
            if not rec:
                return None
            return DocumentRef(id=rec.id, type=rec.type,
                               original_name=rec.name, storage_path=rec.path)

    def read_bytes(self, file_id: str) -> bytes:
        ref = self.get(file_id)
        if ref is None or not os.path.isfile(ref.storage_path):
            raise DocumentMissing(file_id)
        with open(ref.storage_path, "rb") as f:
            return f.read()
