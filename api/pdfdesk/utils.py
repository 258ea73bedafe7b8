
import base64, hashlib
from fastapi import HTTPException, UploadFile
from .config import MAX_UPLOAD_MB
from .engine.imaging import MIME_TYPES, sniff_format

def bytes_to_data_url(b: bytes) -> str:
    mime = MIME_TYPES[sniff_format(b)]
    return f"data:{mime};base64,{base64.b64encode(b).decode()}"

def sha256_bytes(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()

def parse_hex_color(value: str):
    # "#rrggbb" -> (r, g, b) floats in 0..1
    text = (value or "").strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"invalid colour {value!r}")
    return tuple(int(text[i:i + 2], 16) / 255 for i in (0, 2, 4))

def read_upload(upload: UploadFile) -> bytes:
    data = upload.file.read()
    if len(data) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(413, f"upload exceeds {MAX_UPLOAD_MB} MB")
    if not data:
        raise HTTPException(400, "empty upload")
    return data

def content_disposition(filename: str, inline: bool = False) -> str:
    return f'{"inline" if inline else "attachment"}; filename="{filename}"'
