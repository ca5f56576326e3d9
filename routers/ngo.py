from fastapi import APIRouter, HTTPException, UploadFile

from listings import request_donation, submit_ngo_request, upload_document
from schemas import NGORequestCreate, Notice
from .auth import CurrentStateDep

router = APIRouter(tags=["ngo"])


@router.post("/requests", status_code=201)
def submit_verification(request_in: NGORequestCreate, state: CurrentStateDep):
    """Submit the NGO's verification application for admin review."""
    request = submit_ngo_request(state.store, state.ctx.identity, request_in)
    return {
        "notice": Notice(text="Verification request submitted successfully!").model_dump(),
        "request": request.model_dump(by_alias=True),
        "ngoStatus": state.ctx.identity.ngo_status,
    }


@router.get("/status")
def verification_status(state: CurrentStateDep):
    identity = state.ctx.identity
    if identity.role != "ngo":
        raise HTTPException(status_code=403, detail="Only NGO accounts have a verification status.")
    return {"ngoStatus": identity.ngo_status, "ngoId": identity.ngo_id}


@router.post("/documents", status_code=201)
async def upload_verification_document(file: UploadFile, state: CurrentStateDep):
    url = upload_document(state.store, state.ctx.identity, file.filename, await file.read())
    return {"notice": Notice(text="Document uploaded").model_dump(), "url": url}


@router.post("/donations/{item_id}/request")
def request_pickup(item_id: str, state: CurrentStateDep):
    notice = request_donation(state.store, state.ctx.identity, item_id)
    return {"notice": notice.model_dump()}
