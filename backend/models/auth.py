"""
Field-force - Auth & user models
Three roles: Owner (everything), Manager (own MRs), MR (self only).
"""

from enum import Enum

from pydantic import BaseModel


class Role(str, Enum):
    OWNER = "Owner"
    MANAGER = "Manager"
    MR = "MR"


class UserLogin(BaseModel):
    email: str
    password: str
