"""Map router: markers and highlighted countries for the caller's content."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.content import list_contents_service
from services.geocoding import GeocodingConfigError, MapboxGeocoder, get_geocoder
from services.map_view import MapView, filter_contents

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def get_map(
    show_books: bool = Query(default=True),
    show_podcasts: bool = Query(default=True),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
):
    """Render the globe payload as GeoJSON markers plus highlighted country codes."""
    contents = await list_contents_service(auth.user_id, db)
    visible = filter_contents(contents, show_books=show_books, show_podcasts=show_podcasts)

    view = MapView(geocoder, access_token=geocoder.access_token)
    try:
        view.initialize()
    except GeocodingConfigError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    await view.set_content(visible)
    await view.mark_loaded()
    payload = view.to_feature_collection()
    await view.close()

    logger.info(
        "map_render user=%s contents=%s markers=%s countries=%s",
        auth.user_id,
        len(visible),
        len(payload["features"]),
        len(payload["highlighted_countries"]),
    )
    return payload
