"""Where each deployed service can be reached."""

from typing import Mapping, Protocol

from questops.models import Environment, ServiceConfig

DEFAULT_SERVICE_URLS: dict[Environment, dict[str, str]] = {
    Environment.STAGING: {
        "backend": "https://quest-api-staging.railway.app",
        "frontend": "https://quest-frontend-staging.netlify.app",
    },
    Environment.PRODUCTION: {
        "backend": "https://quest-api.railway.app",
        "frontend": "https://quest-frontend.netlify.app",
    },
}


class ServiceUrlResolver(Protocol):
    """Maps (environment, service) to a base URL; swap in a platform-API lookup without touching the pipeline."""

    def resolve(self, environment: Environment, service_name: str, service: ServiceConfig) -> str: ...


class StaticServiceUrlResolver:
    """Static table with a http://localhost:<port> fallback for unknown services."""

    def __init__(self, urls: Mapping[Environment, Mapping[str, str]] | None = None) -> None:
        self._urls = urls if urls is not None else DEFAULT_SERVICE_URLS

    def resolve(self, environment: Environment, service_name: str, service: ServiceConfig) -> str:
        url = self._urls.get(environment, {}).get(service_name)
        if url:
            return url.rstrip("/")
        return f"http://localhost:{service.port or 3000}"
