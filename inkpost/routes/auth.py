"""
FastAPI routes for signup, login and the current session.
"""
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from inkpost.auth import get_current_user
from inkpost.db import get_db
from inkpost.models import User
from inkpost.serializers import user_to_dict
from inkpost.services.users import MIN_NAME_LENGTH, MIN_PASSWORD_LENGTH, authenticate, issue_token, register_user


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=1, description="Account password")


class RegisterRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: str = Field(..., min_length=MIN_NAME_LENGTH, max_length=100)


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> Dict:
    user = register_user(db, email=payload.email, password=payload.password, name=payload.name)
    return {"user": user_to_dict(user), "token": issue_token(user)}


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> Dict:
    user = authenticate(db, email=payload.email, password=payload.password)
    return {"user": user_to_dict(user), "token": issue_token(user)}


@router.get("/me")
def me(user: User = Depends(get_current_user)) -> Dict:
    return {"user": user_to_dict(user)}
