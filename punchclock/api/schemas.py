from pydantic import BaseModel
from typing import Literal
from ..punch_models import PunchInput, PunchRecord

class TimeOut(BaseModel):
    iso: str
    epochMillis: int
    source: Literal["reference", "host"]

# Request and response bodies are the domain models themselves
PunchSubmission = PunchInput
PunchOut = PunchRecord
