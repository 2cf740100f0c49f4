"""
Pydantic schemas for Around Service
"""
from pydantic import BaseModel


class UserCredentials(BaseModel):
    """Signup / login request; empty fields are rejected by the service, not here"""
    username: str = ""
    password: str = ""


class TokenResponse(BaseModel):
    """Token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LocationSchema(BaseModel):
    """Latitude/longitude pair"""
    lat: float
    lon: float


class PostResponse(BaseModel):
    """Post as returned by search"""
    id: str
    user: str
    message: str
    location: LocationSchema
    url: str = ""


class PostCreatedResponse(BaseModel):
    """Synchronous part of post creation succeeded"""
    id: str
    url: str = ""
    message: str = "Post received"


class MessageResponse(BaseModel):
    """Generic message response"""
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    """Error response"""
    code: str
    message: str
