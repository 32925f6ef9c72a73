from fastapi import APIRouter, Depends

from dependencies import get_translation_service
from schemas import TranslateIn, TranslateOut
from translation import TranslationService

router = APIRouter(prefix="/translation", tags=["translation"])


@router.post("/translate", response_model=TranslateOut)
async def translate(
    body: TranslateIn,
    translator: TranslationService = Depends(get_translation_service),
):
    """Translate UI strings. Public, so the login page can be translated too."""
    return await translator.translate(body.texts, body.target_language, body.source_language)
