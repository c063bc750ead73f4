"""
i18n endpoints - supported languages, translation tables and the language switch.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from app.routes.deps import get_current_user
from app.services.i18n_service import (
    SUPPORTED_LANGUAGES,
    fallback_chain,
    get_i18n_service,
    get_translations,
    is_supported,
    translate,
)
from typing import Dict

router = APIRouter(prefix="/i18n", tags=["i18n"])


class LanguageRequest(BaseModel):
    language: str


@router.get("/languages")
async def languages():
    return SUPPORTED_LANGUAGES


@router.get("/translations/{language}")
async def translations(language: str):
    if not is_supported(language):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unsupported language: {language}")
    return {"language": language, "fallbacks": fallback_chain(language)[1:], "translations": get_translations(language)}


@router.get("/translate/{language}/{key}")
async def translate_key(language: str, key: str):
    return {"language": language, "key": key, "text": translate(key, language)}


@router.put("/language")
async def set_language(request: LanguageRequest, user: Dict = Depends(get_current_user)):
    try:
        return get_i18n_service().set_user_language(user["id"], request.language)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
