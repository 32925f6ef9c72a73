from fastapi import APIRouter, Depends, Query

from dependencies import get_news_service
from news import NewsService
from schemas import User
from security import require_widget

router = APIRouter(prefix="/news", tags=["widgets"])

NEWS_WIDGET = "Headlines / News"


@router.get("/global")
async def global_news(
    q: str = "",
    user: User = Depends(require_widget(NEWS_WIDGET)),
    news: NewsService = Depends(get_news_service),
):
    return await news.global_news(q)


@router.get("/headlines")
async def headlines(
    country: str = "",
    category: str = "",
    q: str = "",
    user: User = Depends(require_widget(NEWS_WIDGET)),
    news: NewsService = Depends(get_news_service),
):
    return await news.headlines(country=country, category=category, query=q)


@router.get("/everything")
async def everything(
    q: str = Query(..., min_length=1),
    sort_by: str = Query("publishedAt", alias="sortBy"),
    user: User = Depends(require_widget(NEWS_WIDGET)),
    news: NewsService = Depends(get_news_service),
):
    return await news.everything(q, sort_by=sort_by)


@router.get("/city")
async def city_news(
    city: str = "",
    country: str = "",
    user: User = Depends(require_widget(NEWS_WIDGET)),
    news: NewsService = Depends(get_news_service),
):
    return await news.city_news(city=city, country=country)
