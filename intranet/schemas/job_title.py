from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from intranet.models.user import AppRole


class JobTitleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=100)
    default_role: Optional[AppRole] = None


class JobTitleUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    default_role: Optional[AppRole] = None
    is_active: Optional[bool] = None


class JobTitleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    category: str
    default_role: AppRole
    is_active: bool


class JobTitleCatalogue(BaseModel):
    categories: List[str]
    titles: List[str]
