
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from pydantic import ValidationError
from ..ledger import LocalLedger, get_ledger
from ..schemas import FillPayload, InspectOut, SignPayload
from ..utils import content_disposition, read_upload
from .. import workflows

router = APIRouter()

def _artifact_response(artifact) -> Response:
    headers = {"Content-Disposition": content_disposition(artifact.filename)}
    headers.update(artifact.headers)
    return Response(content=artifact.content, media_type=artifact.media_type, headers=headers)

def _parse(model, payload: str):
    try:
        return model.model_validate_json(payload or "{}")
    except ValidationError as exc:
        raise HTTPException(422, f"invalid payload: {exc}")

@router.post("/inspect", response_model=InspectOut)
def inspect_document(file: UploadFile = File(...)):
    return workflows.inspect_document(read_upload(file))

@router.post("/fill")
def fill_document(
    file: UploadFile = File(...),
    payload: str = Form("{}"),
    ledger: LocalLedger = Depends(get_ledger),
):
    body = _parse(FillPayload, payload)
    try:
        artifact = workflows.fill_document(
            read_upload(file), file.filename or "document.pdf",
            field_edits=body.fields, texts=body.texts, flatten=body.flatten,
            persistence=ledger, entitlement=ledger,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return _artifact_response(artifact)

@router.post("/sign")
def sign_document(
    file: UploadFile = File(...),
    payload: str = Form("{}"),
    ledger: LocalLedger = Depends(get_ledger),
):
    body = _parse(SignPayload, payload)
    if not body.items:
        raise HTTPException(400, "nothing to sign: no items placed")
    try:
        artifact = workflows.sign_document(
            read_upload(file), file.filename or "document.pdf", body.items,
            flatten=body.flatten, persistence=ledger, entitlement=ledger,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return _artifact_response(artifact)

@router.post("/compress")
def compress_document(
    file: UploadFile = File(...),
    level: str = Query("recommended"),
    ledger: LocalLedger = Depends(get_ledger),
):
    try:
        artifact = workflows.compress_document(
            read_upload(file), file.filename or "document.pdf", level,
            persistence=ledger, entitlement=ledger,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return _artifact_response(artifact)

@router.post("/to-images")
def document_to_images(
    file: UploadFile = File(...),
    fmt: str = Query("jpeg"),
    dpi: float = Query(150, gt=0, le=600),
    quality: Optional[float] = Query(None, gt=0, le=1),
    ledger: LocalLedger = Depends(get_ledger),
):
    artifact = workflows.document_to_images(
        read_upload(file), file.filename or "document.pdf", fmt=fmt, dpi=dpi, quality=quality,
        persistence=ledger, entitlement=ledger,
    )
    return _artifact_response(artifact)
