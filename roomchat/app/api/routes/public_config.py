from fastapi import APIRouter, Depends
from ...core.config import Settings
from ...schemas import PublicConfigOut
from ..deps import get_settings

router = APIRouter()

@router.get("/config", response_model=PublicConfigOut)
def read_config(settings: Settings = Depends(get_settings)):
    return {
        "isProd": settings.is_prod,
        "imageDomains": settings.image_domains,
        "transpilePackages": settings.transpile_packages,
    }
