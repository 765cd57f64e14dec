from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile, status

from placeshare.deps import get_place_service
from placeshare.models import PlaceUpdate
from placeshare.security.auth import get_current_user_id
from placeshare.services.image_storage import ImageStorage, get_image_storage, remove_image_quietly
from placeshare.services.place_service import PlaceService

router = APIRouter()


@router.get("/{place_id}", summary="Get a place by id")
async def get_place_by_id(place_id: str, service: PlaceService = Depends(get_place_service)):
    place = await service.get_place_by_id(place_id)
    return {"place": place}


@router.get("/user/{user_id}", summary="List the places created by a user")
async def get_places_by_user_id(user_id: str, service: PlaceService = Depends(get_place_service)):
    places = await service.get_places_by_user_id(user_id)
    return {"places": places}


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a place")
async def create_place(
    title: str = Form(..., min_length=1),
    description: str = Form(..., min_length=5),
    address: str = Form(..., min_length=1),
    image: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    service: PlaceService = Depends(get_place_service),
    storage: ImageStorage = Depends(get_image_storage),
):
    content = await storage.read_upload(image)
    image_ref = await storage.save_image(content, image.content_type)
    try:
        place = await service.create_place(user_id, title, description, address, image_ref)
    except Exception:
        # the place was not created, drop the upload with it
        await remove_image_quietly(storage, image_ref)
        raise
    return {"place": place}


@router.patch("/{place_id}", summary="Update title and description of a place")
async def update_place(
    place_id: str,
    payload: PlaceUpdate,
    user_id: str = Depends(get_current_user_id),
    service: PlaceService = Depends(get_place_service),
):
    place = await service.update_place(user_id, place_id, payload.title, payload.description)
    return {"place": place}


@router.delete("/{place_id}", summary="Delete a place")
async def delete_place(
    place_id: str,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    service: PlaceService = Depends(get_place_service),
    storage: ImageStorage = Depends(get_image_storage),
):
    place = await service.delete_place(user_id, place_id)
    background_tasks.add_task(remove_image_quietly, storage, place.get("image"))
    return {"message": "Deleted place."}
