"""
Manual end-to-end check of the x402 auto-pay path.

Starts the sentiment402 MCP server over stdio with a funded payer key, calls
one tool and prints either the payment requirements or the tool response.
Spends real testnet (or mainnet) funds when the API asks for payment.

Environment:
    SENTIMENT402_X402_PRIVATE_KEY   payer key (required)
    SENTIMENT402_USE_LOCALHOST      "true" to target http://localhost:8080
    SENTIMENT402_API_BASE_URL       explicit API base URL
    SENTIMENT402_MCP_TOOL           tool to call (default get_global_snapshot)
    SENTIMENT402_MCP_TOOL_ARGS      JSON object of tool arguments
    SENTIMENT402_MCP_SERVER_CMD     server command (default: this interpreter)
    SENTIMENT402_MCP_SERVER_ARGS    server arguments (default: -m sentiment402_mcp)
"""

import asyncio
import json
import os
import sys

from dotenv import load_dotenv
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

load_dotenv()

LOCALHOST_URL = "http://localhost:8080"
DEFAULT_API_URL = "https://sentiment-api.kytona.com"
SEPARATOR = "-" * 80


def server_parameters(api_base_url: str, max_payment: str, payment_key: str) -> StdioServerParameters:
    env = {
        "PATH": os.environ.get("PATH", ""),
        "SENTIMENT402_API_BASE_URL": api_base_url,
        "SENTIMENT402_API_VERSION": os.getenv("SENTIMENT402_API_VERSION", "v1"),
        "SENTIMENT402_CACHE_TTL_MS": os.getenv("SENTIMENT402_CACHE_TTL_MS", "60000"),
        "SENTIMENT402_USER_AGENT": os.getenv("SENTIMENT402_USER_AGENT", "sentiment402-mcp/0.1.0"),
        "SENTIMENT402_X402_MAX_PAYMENT": max_payment,
        "SENTIMENT402_X402_PRIVATE_KEY": payment_key,
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    }
    server_args = os.getenv("SENTIMENT402_MCP_SERVER_ARGS")
    return StdioServerParameters(
        command=os.getenv("SENTIMENT402_MCP_SERVER_CMD", sys.executable),
        args=server_args.split() if server_args else ["-m", "sentiment402_mcp"],
        env=env,
    )


def print_payment_requirements(payload: dict):
    print("📋 Payment Requirements:")
    if payload.get("resource"):
        print(f"   Resource: {payload['resource']}")
    print(f"   Reason: {payload.get('reason')}")
    for index, accept in enumerate(payload.get("accepts") or [], start=1):
        parts = [
            accept.get("network"),
            accept.get("scheme"),
            f"{accept['amount']} units" if accept.get("amount") else None,
            f"of {accept['asset']}" if accept.get("asset") else None,
            f"→ {accept['payTo']}" if accept.get("payTo") else None,
        ]
        print(f"   [{index}] " + " • ".join(part for part in parts if part))


def print_tool_output(text: str):
    try:
        payload = json.loads(text)
    except ValueError:
        print(text)
        return

    if isinstance(payload, dict) and payload.get("error") == "PAYMENT_REQUIRED":
        print_payment_requirements(payload)
        return

    print("✅ Tool response:")
    print(json.dumps(payload, indent=2))


async def run(tool_name: str, tool_args: dict, params: StdioServerParameters):
    async with stdio_client(params) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()
            print(SEPARATOR)
            print(f"TOOL: {tool_name}")
            print(SEPARATOR)

            result = await session.call_tool(tool_name, arguments=tool_args)

    text = "\n".join(
        item.text for item in result.content if getattr(item, "type", None) == "text"
    ).strip()
    if result.isError:
        print(f"❌ Tool error: {text}")
        return False
    if not text:
        print("Tool returned no text content.")
        return True
    print_tool_output(text)
    return True


def main():
    payment_key = os.getenv("SENTIMENT402_X402_PRIVATE_KEY")
    if not payment_key:
        print("❌ Error: Missing SENTIMENT402_X402_PRIVATE_KEY for x402 payment test.")
        sys.exit(1)

    try:
        tool_args = json.loads(os.getenv("SENTIMENT402_MCP_TOOL_ARGS") or "{}")
    except ValueError:
        print("❌ Error: Invalid SENTIMENT402_MCP_TOOL_ARGS JSON")
        sys.exit(1)

    if os.getenv("SENTIMENT402_USE_LOCALHOST") == "true":
        api_base_url = LOCALHOST_URL
    else:
        api_base_url = os.getenv("SENTIMENT402_API_BASE_URL", DEFAULT_API_URL)
    max_payment = os.getenv("SENTIMENT402_X402_MAX_PAYMENT", "100000")
    tool_name = os.getenv("SENTIMENT402_MCP_TOOL", "get_global_snapshot")

    print("=" * 80)
    print("MCP X402 PAYMENT TEST (stdio)")
    print("=" * 80)
    print(f"Base URL: {api_base_url}")
    print(f"Max payment per request: {max_payment} units")
    print("")

    params = server_parameters(api_base_url, max_payment, payment_key)
    ok = asyncio.run(run(tool_name, tool_args, params))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
