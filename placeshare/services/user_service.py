import logging
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from placeshare.errors import AuthorizationError, InternalError, ValidationError
from placeshare.models import AuthResult, user_to_public
from placeshare.security.auth import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

EMAIL_TAKEN = "User exists already, please login instead."
INVALID_CREDENTIALS = "Invalid credentials, could not log you in."


class UserService:
    def __init__(self, database: AsyncIOMotorDatabase):
        self.db = database

    async def list_users(self) -> List[dict]:
        try:
            users = await self.db.users.find({}, projection={"password": 0}).to_list(length=None)
        except PyMongoError:
            logger.exception("Fetching users failed")
            raise InternalError("Fetching users failed, please try again later.")
        return [user_to_public(u) for u in users]

    async def signup(self, name: str, email: str, password: str, image: str) -> AuthResult:
        email = email.lower()
        try:
            existing = await self.db.users.find_one({"email": email})
        except PyMongoError:
            logger.exception(f"Lookup of {email} failed")
            raise InternalError("Signing up failed, please try again later.")
        if existing:
            raise ValidationError(EMAIL_TAKEN)

        doc = {
            "name": name,
            "email": email,
            "password": hash_password(password),
            "image": image,
            "places": [],
        }
        try:
            result = await self.db.users.insert_one(doc)
        except DuplicateKeyError:
            # lost a race against another signup with the same email
            raise ValidationError(EMAIL_TAKEN)
        except PyMongoError:
            logger.exception(f"Creating user {email} failed")
            raise InternalError("Signing up failed, please try again later.")

        user_id = str(result.inserted_id)
        logger.info(f"User {user_id} signed up")
        return AuthResult(userId=user_id, email=email, token=create_access_token(user_id, email))

    async def login(self, email: str, password: str) -> AuthResult:
        email = email.lower()
        try:
            user = await self.db.users.find_one({"email": email})
        except PyMongoError:
            logger.exception(f"Lookup of {email} failed")
            raise InternalError("Logging in failed, please try again later.")

        if not user or not verify_password(password, user.get("password", "")):
            logger.warning(f"Failed login for {email}")
            raise AuthorizationError(INVALID_CREDENTIALS)

        user_id = str(user["_id"])
        return AuthResult(userId=user_id, email=email, token=create_access_token(user_id, email))
