
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Response
from ..engine.collaborators import DeleteOutcome
from ..engine.imaging import MIME_TYPES, decode_image_payload, sniff_format
from ..ledger import LocalLedger, get_ledger
from ..schemas import SignatureCreate, SignatureOut
from ..utils import bytes_to_data_url

router = APIRouter()

@router.get("", response_model=List[SignatureOut])
def list_signatures(ledger: LocalLedger = Depends(get_ledger)):
    return [
        SignatureOut(id=s.id, name=s.name, image=bytes_to_data_url(s.image_bytes), created_at=s.created_at)
        for s in ledger.list_saved_signatures()
    ]

@router.post("")
def create_signature(payload: SignatureCreate, ledger: LocalLedger = Depends(get_ledger)):
    if not payload.name.strip():
        raise HTTPException(400, "name required")
    sig_id = ledger.save_signature(payload.name.strip(), decode_image_payload(payload.image))
    return {"id": sig_id}

@router.get("/{signature_id}/image")
def signature_image(signature_id: str, ledger: LocalLedger = Depends(get_ledger)):
    entry = ledger.get_signature(signature_id)
    if not entry:
        raise HTTPException(404, "signature not found")
    return Response(content=entry.image_bytes, media_type=MIME_TYPES[sniff_format(entry.image_bytes)])

@router.delete("/{signature_id}")
def delete_signature(signature_id: str, ledger: LocalLedger = Depends(get_ledger)):
    if ledger.delete_signature(signature_id) is DeleteOutcome.NOT_FOUND:
        raise HTTPException(404, "signature not found")
    return {"ok": True}
