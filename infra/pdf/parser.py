import io
import pdfplumber
from domain.errors import UnreadableDocument

def extract_text(data: bytes) -> str:
    text_parts = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                t = page.extract_text() or ""
                text_parts.append(t)
    except Exception as exc:
        raise UnreadableDocument(f"could not extract text: {exc}") from exc
    return "\n".join(text_parts)
