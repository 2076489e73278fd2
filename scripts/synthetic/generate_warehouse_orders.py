#!/usr/bin/env python3
"""Generate synthetic orders against the warehouse operations API."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import random
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Mapping, MutableMapping, Sequence

import httpx

DEFAULT_ORDER_TYPES = ["inbound", "outbound", "transfer"]
DEFAULT_PRIORITIES = ["low", "medium", "high", "urgent"]
DEFAULT_CUSTOMERS = [
    ("Ada Lovelace", "ada@example.com"),
    ("Grace Hopper", "grace@example.com"),
    ("Alan Turing", "alan@example.com"),
    ("Katherine Johnson", "katherine@example.com"),
]


def _env_default(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def _split_env(name: str, fallback: Sequence[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return list(fallback)
    return [token.strip() for token in value.split(",") if token.strip()]


@dataclass(slots=True)
class OrderResult:
    order_number: str | None
    duration: float
    status_code: int | None
    error: str | None


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate synthetic warehouse orders")
    parser.add_argument(
        "--base-url",
        default=_env_default("WAREHOUSE_GENERATOR_BASE_URL", "http://127.0.0.1:8000"),
        help="Warehouse service base URL (default: %(default)s or WAREHOUSE_GENERATOR_BASE_URL)",
    )
    parser.add_argument(
        "--warehouse-id",
        type=int,
        default=int(_env_default("WAREHOUSE_GENERATOR_WAREHOUSE_ID", "1")),
        help="Warehouse receiving or shipping the orders (default: %(default)s)",
    )
    parser.add_argument(
        "--supplier-id",
        type=int,
        default=int(_env_default("WAREHOUSE_GENERATOR_SUPPLIER_ID", "1")),
        help="Supplier used for inbound orders (default: %(default)s)",
    )
    parser.add_argument(
        "--actor-id",
        type=int,
        default=int(_env_default("WAREHOUSE_GENERATOR_ACTOR_ID", "1")),
        help="User id sent in the X-Actor-Id header (default: %(default)s)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=int(_env_default("WAREHOUSE_GENERATOR_COUNT", "10")),
        help="Number of orders to create (default: %(default)s or WAREHOUSE_GENERATOR_COUNT)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=int(_env_default("WAREHOUSE_GENERATOR_CONCURRENCY", "4")),
        help="Maximum concurrent order creations (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=float(_env_default("WAREHOUSE_GENERATOR_TIMEOUT", "5")),
        help="HTTP timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--order-types",
        nargs="*",
        default=_split_env("WAREHOUSE_GENERATOR_ORDER_TYPES", DEFAULT_ORDER_TYPES),
        help="Order types to draw from (default: %(default)s)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print generated payloads without calling the API",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty-print the final JSON result (default: False)",
    )

    args = parser.parse_args()

    if args.count <= 0:
        parser.error("--count must be positive")
    if args.concurrency <= 0:
        parser.error("--concurrency must be positive")
    if not set(args.order_types) <= set(DEFAULT_ORDER_TYPES):
        parser.error(f"--order-types must be drawn from {', '.join(DEFAULT_ORDER_TYPES)}")

    return args


def _build_order_payload(
    *,
    order_types: Sequence[str],
    warehouse_id: int,
    supplier_id: int,
) -> Mapping[str, Any]:
    order_type = random.choice(order_types)
    total = round(random.uniform(50.0, 2_000.0), 2)
    payload: dict[str, Any] = {
        "order_type": order_type,
        "warehouse_id": warehouse_id,
        "priority": random.choice(DEFAULT_PRIORITIES),
        "total_amount": f"{total:.2f}",
        "discount_amount": f"{round(total * random.choice([0, 0, 0.05, 0.1]), 2):.2f}",
        "expected_delivery_date": (date.today() + timedelta(days=random.randint(1, 21))).isoformat(),
    }
    if order_type == "inbound":
        payload["supplier_id"] = supplier_id
    elif order_type == "outbound":
        name, email = random.choice(DEFAULT_CUSTOMERS)
        payload["customer_name"] = name
        payload["customer_email"] = email
    return payload


async def _post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: Mapping[str, Any],
) -> tuple[int, MutableMapping[str, Any]]:
    response = await client.post(url, json=payload)
    response.raise_for_status()
    body = response.json()
    if not isinstance(body, MutableMapping):
        raise ValueError("Unexpected JSON response structure")
    return response.status_code, body


async def _create_order(client: httpx.AsyncClient, base_url: str, payload: Mapping[str, Any]) -> OrderResult:
    start = time.perf_counter()
    try:
        status, body = await _post_json(client, f"{base_url}/orders", payload)
        return OrderResult(
            order_number=str(body["order_number"]),
            duration=time.perf_counter() - start,
            status_code=status,
            error=None,
        )
    except (httpx.HTTPError, ValueError, KeyError) as exc:
        response = getattr(exc, "response", None)
        return OrderResult(
            order_number=None,
            duration=time.perf_counter() - start,
            status_code=response.status_code if response is not None else None,
            error=str(exc),
        )


async def _worker(
    client: httpx.AsyncClient,
    base_url: str,
    queue: "asyncio.Queue[Mapping[str, Any]]",
    results: list[OrderResult],
) -> None:
    while True:
        payload = await queue.get()
        try:
            results.append(await _create_order(client, base_url, payload))
        finally:
            queue.task_done()


async def generate_orders(args: argparse.Namespace) -> Mapping[str, Any]:
    base_url = args.base_url.rstrip("/")
    payloads = [
        _build_order_payload(
            order_types=args.order_types,
            warehouse_id=args.warehouse_id,
            supplier_id=args.supplier_id,
        )
        for _ in range(args.count)
    ]

    if args.dry_run:
        return {
            "status": "dry-run",
            "count": args.count,
            "sample": payloads[: min(3, len(payloads))],
        }

    headers = {"X-Actor-Id": str(args.actor_id)}
    async with httpx.AsyncClient(timeout=args.timeout, headers=headers) as client:
        queue: asyncio.Queue[Mapping[str, Any]] = asyncio.Queue()
        for payload in payloads:
            queue.put_nowait(payload)

        results: list[OrderResult] = []
        workers = [
            asyncio.create_task(_worker(client, base_url, queue, results))
            for _ in range(min(args.concurrency, args.count))
        ]

        await queue.join()

        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    successes = [result for result in results if result.order_number]
    failures = [result for result in results if not result.order_number]
    average_duration = (
        sum(result.duration for result in successes) / len(successes) if successes else 0.0
    )

    return {
        "status": "ok" if not failures else "partial",
        "requested": args.count,
        "created": len(successes),
        "failed": len(failures),
        "averageDurationSeconds": round(average_duration, 3),
        "orderNumbers": sorted(result.order_number for result in successes if result.order_number),
        "failures": [
            {
                "durationSeconds": round(result.duration, 3),
                "statusCode": result.status_code,
                "error": result.error,
            }
            for result in failures
        ],
    }


async def main_async() -> int:
    args = parse_args()
    report = await generate_orders(args)
    print(json.dumps(report, indent=2 if args.pretty else None))
    return 0 if report.get("status") in {"ok", "dry-run"} else 2


def main() -> None:
    try:
        exit_code = asyncio.run(main_async())
    except KeyboardInterrupt:
        exit_code = 130
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
