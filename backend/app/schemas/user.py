from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

RoleLiteral = Literal["admin", "manager", "pharmacy", "hospital", "staff"]


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: RoleLiteral = "staff"

    @field_validator('password')
    @classmethod
    def password_min_length(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters')
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    role: str
    is_active: bool


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
