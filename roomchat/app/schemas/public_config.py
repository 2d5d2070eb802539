from typing import List
from pydantic import BaseModel

class PublicConfigOut(BaseModel):
    isProd: bool
    imageDomains: List[str]
    transpilePackages: List[str]
