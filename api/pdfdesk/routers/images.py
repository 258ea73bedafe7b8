
from typing import List
from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from ..engine.image_pdf import PageLayout
from ..ledger import LocalLedger, get_ledger
from ..utils import content_disposition, read_upload
from .. import workflows

router = APIRouter()

@router.post("/to-pdf")
def images_to_pdf(
    files: List[UploadFile] = File(...),
    page_size: str = Query("a4"),
    orientation: str = Query("portrait"),
    margin_mm: float = Query(10, ge=0),
    fit: str = Query("fit"),
    ledger: LocalLedger = Depends(get_ledger),
):
    images = [read_upload(f) for f in files]
    layout = PageLayout(page_size=page_size.lower(), orientation=orientation.lower(), margin_mm=margin_mm, fit=fit.lower())
    try:
        artifact = workflows.build_pdf_from_images(images, layout, persistence=ledger, entitlement=ledger)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": content_disposition(artifact.filename)},
    )
