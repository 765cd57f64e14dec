from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import EmailStr

from placeshare.deps import get_user_service
from placeshare.models import AuthResult, UserLogin
from placeshare.services.image_storage import ImageStorage, get_image_storage, remove_image_quietly
from placeshare.services.user_service import UserService

router = APIRouter()


@router.get("", summary="List users")
async def get_users(service: UserService = Depends(get_user_service)):
    users = await service.list_users()
    return {"users": users}


@router.post("/signup", response_model=AuthResult, status_code=status.HTTP_201_CREATED, summary="Create an account")
async def signup(
    name: str = Form(..., min_length=1),
    email: EmailStr = Form(...),
    password: str = Form(..., min_length=6),
    image: UploadFile = File(...),
    service: UserService = Depends(get_user_service),
    storage: ImageStorage = Depends(get_image_storage),
):
    content = await storage.read_upload(image)
    image_ref = await storage.save_image(content, image.content_type)
    try:
        return await service.signup(name, email, password, image_ref)
    except Exception:
        await remove_image_quietly(storage, image_ref)
        raise


@router.post("/login", response_model=AuthResult, summary="Log in and receive a token")
async def login(credentials: UserLogin, service: UserService = Depends(get_user_service)):
    return await service.login(credentials.email, credentials.password)
