# models/assessment_models.py

from pydantic import BaseModel, Field
from typing import List, Union

class ParticipantCreate(BaseModel):
    name: str = Field(..., min_length=1)   # name or initials
    age: int = Field(..., ge=18, le=85)
    education_level: int = Field(2, ge=1, le=3)

    model_config = {
        "json_schema_extra": {
            "example": {"name": "J.P.", "age": 34, "education_level": 2}
        }
    }

class DigitPress(BaseModel):
    digit: int = Field(..., ge=0, le=8)

class DigitResponse(BaseModel):
    # "173" or [1, 7, 3]
    digits: Union[str, List[int]]

class AttentionAnswer(BaseModel):
    is_target: bool
