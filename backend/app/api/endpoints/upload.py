from fastapi import APIRouter, UploadFile, File, HTTPException, Depends
from app.schemas.upload import UploadResponse
from app.core.security import get_current_user
from app.services.uploads import (
    CloudinaryClient,
    UploadError,
    UploadRejected,
    get_cloudinary_client,
    get_policy,
    validate_upload,
)

router = APIRouter(dependencies=[Depends(get_current_user)])


def cloudinary_client_dependency() -> CloudinaryClient:
    try:
        return get_cloudinary_client()
    except UploadError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/uploads/{kind}", response_model=UploadResponse)
async def upload_file(
    kind: str,
    file: UploadFile = File(...),
    client: CloudinaryClient = Depends(cloudinary_client_dependency),
):
    try:
        policy = get_policy(kind)
        content = await file.read()
        validate_upload(policy, file.filename or "", file.content_type or "", len(content))
        uploaded = await client.upload(
            policy,
            filename=file.filename or "upload",
            content=content,
            content_type=file.content_type or "application/octet-stream",
        )
    except UploadRejected as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UploadError as e:
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        await client.aclose()

    return UploadResponse(kind=policy.kind, filename=file.filename or "", **uploaded)
