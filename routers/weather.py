from fastapi import APIRouter, Depends, Query

from dependencies import get_weather_service
from schemas import User
from security import require_widget
from weather import WeatherService

router = APIRouter(tags=["widgets"])


@router.get("/weather")
async def current_weather(
    city: str = Query(..., min_length=1),
    user: User = Depends(require_widget("Weather Details")),
    weather: WeatherService = Depends(get_weather_service),
):
    return await weather.current(city)
