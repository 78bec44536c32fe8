from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from users.domain.entities import MAX_PASSWORD_BYTES, UserChanges


def _check_password(value: str) -> str:
    if len(value.encode()) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class CreateUserRequest(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=8)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)

    check_password = field_validator("password")(_check_password)


class UpdateUserRequest(BaseModel):
    email: EmailStr | None = None
    username: str | None = Field(default=None, min_length=3, max_length=100)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None

    @model_validator(mode="after")
    def reject_null_required(self) -> "UpdateUserRequest":
        for name in ("email", "username", "is_active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_changes(self) -> UserChanges:
        """Only keys present in the request body become changes."""
        return UserChanges(**self.model_dump(exclude_unset=True))


class ChangePasswordRequest(BaseModel):
    password: str = Field(min_length=8)

    check_password = field_validator("password")(_check_password)


class UserResponse(BaseModel):
    id: int
    email: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total_count: int
    page: int
    page_size: int
    total_pages: int

    model_config = {"from_attributes": True}

