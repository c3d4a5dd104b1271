"""FastAPI server exposing the flat lay pipeline for deployment."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from shop_app.app import FlatLayShopApp
from shop_app.errors import ConfigError, ParseError, UpstreamError
from shop_app.logging_config import configure_logging


class ImageRequest(BaseModel):
    """Request payload referencing an image by URL."""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", description="Public URL of the source image")


def create_app(shop: FlatLayShopApp | None = None) -> FastAPI:
    """Build the ASGI app around an existing or freshly configured pipeline."""

    configure_logging()
    shop_app = shop or FlatLayShopApp()
    api = FastAPI(title="Flat Lay Shop", version="0.1.0")

    @api.get("/healthz")
    async def healthcheck() -> dict:
        """Lightweight readiness probe."""

        return shop_app.health()

    @api.post("/flat-lay")
    def convert_flat_lay(request: ImageRequest) -> dict:
        """Convert an outfit photo into a generated flat lay image."""

        try:
            result = shop_app.convert_to_flat_lay(request.image_url)
        except ConfigError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except (UpstreamError, ParseError) as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return result.to_dict()

    @api.post("/flat-lay/shop")
    def shop_flat_lay(request: ImageRequest) -> dict:
        """Extract the items of a flat lay and return ranked products per item."""

        try:
            return shop_app.shop_flat_lay(request.image_url)
        except ConfigError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    return api


app = create_app()


def get_app() -> FastAPI:
    """Expose the FastAPI instance for ASGI servers."""

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:app", host="0.0.0.0", port=int("8080"), reload=False)
