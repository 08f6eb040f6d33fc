import os
import logging
import requests
import yaml
from typing import Any, Dict, Optional
from fastapi import FastAPI, UploadFile, File, HTTPException, Request
from fastapi.responses import PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from dataclasses import asdict

from override_config import ConfigOverrider, FlagResolver, fetch_subscription


class Settings:
    PORT: int = int(os.environ.get('PORT', 8666))
    LOG_LEVEL: str = os.environ.get('LOG_LEVEL', 'INFO')
    # Default flags, e.g. "fakeip=true&threshold=2"; request flags take precedence
    OVERRIDE_ARGS: str = os.environ.get('OVERRIDE_ARGS', '')


settings = Settings()

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
                    format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(title="Clash Routing Override")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

YAML_MEDIA_TYPE = 'application/yaml; charset=utf-8'

# Query parameters that are not override flags
RESERVED_PARAMS = {'url'}


# ==================== Data Models ====================

class OverrideRequest(BaseModel):
    config: Dict[str, Any]
    arguments: Dict[str, Any] = {}


# ==================== Helpers ====================

def merge_arguments(request_args: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    arguments: Dict[str, Any] = FlagResolver.parse_arguments(settings.OVERRIDE_ARGS)
    arguments.update(request_args or {})
    return arguments


def query_arguments(request: Request) -> Dict[str, Any]:
    return {k: v for k, v in request.query_params.items() if k not in RESERVED_PARAMS}


def yaml_response(config: dict) -> PlainTextResponse:
    return PlainTextResponse(content=ConfigOverrider.dump_yaml(config), media_type=YAML_MEDIA_TYPE)


# ==================== API ====================

@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/flags")
def resolve_flags(request: Request):
    flags = FlagResolver.resolve(merge_arguments(query_arguments(request)))
    return asdict(flags)


@app.post("/api/override")
def override_json(data: OverrideRequest):
    overrider = ConfigOverrider(merge_arguments(data.arguments))
    return overrider.override(data.config)


@app.post("/api/override/yaml")
async def override_yaml(request: Request, file: UploadFile = File(...)):
    content = (await file.read()).decode('utf-8', errors='replace')
    try:
        config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise HTTPException(status_code=400, detail=f"Invalid YAML: {str(e)[:100]}")

    if not isinstance(config, dict):
        raise HTTPException(status_code=400, detail="Invalid file format")

    overrider = ConfigOverrider(merge_arguments(query_arguments(request)))
    return yaml_response(overrider.override(config))


@app.get("/api/override/remote")
def override_remote(url: str, request: Request):
    try:
        config = fetch_subscription(url)
    except (requests.RequestException, ValueError, yaml.YAMLError) as e:
        logger.error(f"Failed to fetch subscription {url}: {e}")
        raise HTTPException(status_code=502, detail=f"Cannot fetch subscription: {str(e)[:100]}")

    overrider = ConfigOverrider(merge_arguments(query_arguments(request)))
    return yaml_response(overrider.override(config))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
