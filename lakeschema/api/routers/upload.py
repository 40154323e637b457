import re
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from lakeschema.storage import FileStorage

from ..deps import get_storage, logger
from ..schemas import UploadResponse

router = APIRouter(tags=["Files"])


def clean_key(filename: str) -> str:
    """Sanitize an uploaded filename into a flat storage key."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = re.sub(r"[^a-zA-Z0-9_.\-]", "_", name).strip("._")
    return name or "upload"


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    key: Optional[str] = Form(None),
    storage: FileStorage = Depends(get_storage),
):
    """
    Store a raw input file and return the key to pass in fileKeys.

    Any format is accepted; unknown extensions are sniffed when parsed.
    """
    if not file.filename and not key:
        raise HTTPException(status_code=400, detail="A filename or key is required.")

    storage_key = key or clean_key(file.filename)
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    try:
        await storage.upload(storage_key, content)
    except FileNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Stored upload {storage_key} ({len(content)} bytes)")
    return UploadResponse(key=storage_key, size=len(content))
