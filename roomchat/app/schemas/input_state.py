from pydantic import BaseModel

class InputStateIn(BaseModel):
    value: str

class InputStateOut(BaseModel):
    value: str
