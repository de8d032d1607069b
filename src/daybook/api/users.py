"""Account self-service routes: password change, account deletion, greeting."""

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from daybook.auth.dependencies import CurrentPrincipal, get_current_principal
from daybook.auth.jwt import TokenService, get_token_service
from daybook.config import settings
from daybook.db.engine import get_db
from daybook.errors import InconsistentState, InvalidCredentials, Unauthenticated
from daybook.schemas.user import PasswordChange
from daybook.services.app_config import ConfigSnapshot, get_config_snapshot
from daybook.services.auth_service import AuthService
from daybook.services.entry_service import EntryService
from daybook.services.weather import WeatherClient, build_greeting

router = APIRouter(prefix="/users")


def _auth_svc(
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(db, tokens)


def get_weather_client(
    snapshot: ConfigSnapshot = Depends(get_config_snapshot),
) -> WeatherClient:
    return WeatherClient.from_config(snapshot)


@router.put("/me/password", status_code=204)
async def change_password(
    body: PasswordChange,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: AuthService = Depends(_auth_svc),
):
    try:
        await svc.change_password(principal, body.current_password, body.new_password)
    except (InvalidCredentials, Unauthenticated):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Response(status_code=204)


@router.delete("/me", status_code=204)
async def delete_me(
    principal: CurrentPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Delete the caller's account and all of its entries."""
    try:
        await EntryService(db).delete_user(principal)
    except InconsistentState as e:
        raise HTTPException(status_code=500, detail=str(e))
    return Response(status_code=204)


@router.get("/me/greeting", response_class=PlainTextResponse)
async def greeting(
    principal: CurrentPrincipal = Depends(get_current_principal),
    weather: WeatherClient = Depends(get_weather_client),
    snapshot: ConfigSnapshot = Depends(get_config_snapshot),
):
    """Say hello, with the current weather for the configured city."""
    city = snapshot.get("weather_city", settings.weather_city)
    return await build_greeting(principal.username, weather, city)
