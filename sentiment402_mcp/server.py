"""Sentiment402 MCP server - FastMCP tools over the paywalled sentiment API.

Each tool maps its arguments to a versioned snapshot URL and hands it to the
PaywallFetcher. Payment-required outcomes are returned to the MCP client as
JSON text, never as tool errors.

Tools:
- get_global_snapshot: GET /{version}/snapshot/global
- get_crypto_pulse: GET /{version}/snapshot/crypto
- get_tradfi_pulse: GET /{version}/snapshot/tradfi
- get_asset_view: GET /{version}/snapshot/asset/{symbol}
"""

import json
import logging
from typing import Any, Literal, Optional
from urllib.parse import quote

import httpx
from mcp.server.fastmcp import FastMCP

from .config import AdapterConfig
from .core.cache import TtlCache, build_cache_key
from .core.fetch import PaywallFetcher
from .core.payer import PaymentClient, create_payment_client
from .types.results import PaymentRequiredResult


logger = logging.getLogger(__name__)

SERVER_NAME = "sentiment402-mcp"

API_VERSIONS = ("v1", "v2")
SNAPSHOT_FORMATS = ("full", "compact_trading")

ApiVersion = Literal["v1", "v2"]
SnapshotFormat = Literal["full", "compact_trading"]


def build_snapshot_url(
    config: AdapterConfig,
    path: str,
    version: Optional[str] = None,
    format: Optional[str] = None,
    fields: Optional[str] = None
) -> str:
    """Build the API URL for a snapshot path.

    Args:
        config: Adapter configuration (base URL and default version)
        path: Path below the version segment, e.g. "/snapshot/global"
        version: API version override
        format: Optional response format
        fields: Optional comma separated field selection

    Returns:
        Absolute URL string

    Raises:
        ValueError: If version or format is not supported
    """
    version = version or config.api_version
    if version not in API_VERSIONS:
        raise ValueError(f"Unsupported API version: {version}")
    if format is not None and format not in SNAPSHOT_FORMATS:
        raise ValueError(f"Unsupported format: {format}")

    url = httpx.URL(config.api_base_url).join(f"/{version}{path}")
    params = {}
    if format:
        params["format"] = format
    if fields:
        params["fields"] = fields
    if params:
        url = url.copy_merge_params(params)
    return str(url)


def asset_path(symbol: str) -> str:
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValueError("symbol must be a non-empty string")
    return f"/snapshot/asset/{quote(symbol, safe='')}"


def to_tool_text(payload: Any) -> str:
    return json.dumps(payload, indent=2)


class SnapshotTools:
    """Runs snapshot tool calls against the fetcher."""

    def __init__(self, config: AdapterConfig, fetcher: PaywallFetcher):
        self.config = config
        self.fetcher = fetcher

    async def call(
        self,
        tool_name: str,
        path: str,
        version: Optional[str] = None,
        format: Optional[str] = None,
        fields: Optional[str] = None
    ) -> str:
        url = build_snapshot_url(self.config, path, version, format, fields)
        result = await self.fetcher.fetch_json(url, cache_key=build_cache_key(url, namespace=tool_name))
        if isinstance(result, PaymentRequiredResult):
            logger.info(f"{tool_name}: payment required ({result.reason.value})")
            return to_tool_text(result.to_response())
        return to_tool_text(result.data)


def create_server(
    config: AdapterConfig,
    payment_client: Optional[PaymentClient] = None,
    http_client: Optional[httpx.AsyncClient] = None
) -> FastMCP:
    """Create the FastMCP server with all sentiment tools registered.

    Args:
        config: Validated adapter configuration
        payment_client: Payer override; built from config when None
        http_client: Shared httpx client override

    Returns:
        FastMCP server ready to run
    """
    mcp = FastMCP(SERVER_NAME)

    if payment_client is None:
        payment_client = create_payment_client(config)
    fetcher = PaywallFetcher(
        user_agent=config.user_agent,
        payment_client=payment_client,
        cache=TtlCache(config.cache_ttl_ms),
        http_client=http_client,
        timeout=config.http_timeout_seconds,
    )
    tools = SnapshotTools(config, fetcher)

    @mcp.tool(name="get_global_snapshot", description="Get the global market sentiment snapshot")
    async def get_global_snapshot(
        version: Optional[ApiVersion] = None,
        format: Optional[SnapshotFormat] = None,
        fields: Optional[str] = None
    ) -> str:
        return await tools.call("get_global_snapshot", "/snapshot/global", version, format, fields)

    @mcp.tool(name="get_crypto_pulse", description="Get crypto market sentiment pulse")
    async def get_crypto_pulse(
        version: Optional[ApiVersion] = None,
        format: Optional[SnapshotFormat] = None,
        fields: Optional[str] = None
    ) -> str:
        return await tools.call("get_crypto_pulse", "/snapshot/crypto", version, format, fields)

    @mcp.tool(name="get_tradfi_pulse", description="Get TradFi market sentiment pulse")
    async def get_tradfi_pulse(
        version: Optional[ApiVersion] = None,
        format: Optional[SnapshotFormat] = None,
        fields: Optional[str] = None
    ) -> str:
        return await tools.call("get_tradfi_pulse", "/snapshot/tradfi", version, format, fields)

    @mcp.tool(name="get_asset_view", description="Get the latest pulse for a specific asset/ticker")
    async def get_asset_view(
        symbol: str,
        version: Optional[ApiVersion] = None,
        format: Optional[SnapshotFormat] = None,
        fields: Optional[str] = None
    ) -> str:
        return await tools.call("get_asset_view", asset_path(symbol), version, format, fields)

    logger.info(
        f"{SERVER_NAME} ready: api={config.api_base_url} version={config.api_version} "
        f"auto-pay={'on' if payment_client is not None else 'off'}"
    )
    return mcp
