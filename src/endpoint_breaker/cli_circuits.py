"""Circuit breaker CLI commands for endpoint breaker.

Provides the ``circuits`` command group: a multi-threaded demo of two
independently protected endpoints, an HTTP probe running requests through
a breaker, and a viewer for breaker settings files.
"""

from __future__ import annotations

import asyncio
import json
import random
import sys
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
import httpx

from .breaker_settings import BreakerSettings, load_breaker_settings
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitOpenError,
    LoggingCircuitListener,
)
from .circuit_breaker_config import CircuitBreakerConfig, CircuitState
from .client import ClientError, ProtectedClient, endpoint_key


@dataclass(frozen=True)
class DemoEndpoint:
    """A simulated remote API used by the demo command."""

    key: str
    config: CircuitBreakerConfig
    fallback_value: str
    failure_chance: float


DEMO_ENDPOINTS = (
    DemoEndpoint(
        key="API-A",
        config=CircuitBreakerConfig(failure_threshold=3, recovery_timeout_seconds=5),
        fallback_value="Fallback-A",
        failure_chance=0.7,
    ),
    DemoEndpoint(
        key="API-B",
        config=CircuitBreakerConfig(failure_threshold=2, recovery_timeout_seconds=3),
        fallback_value="Fallback-B",
        failure_chance=0.5,
    ),
)


@click.group()
def circuits() -> None:
    """Circuit breaker commands."""
    pass


# ---------------------------------------------------------------------------
# demo
# ---------------------------------------------------------------------------


@circuits.command(name="demo")
@click.option("--calls", default=10, show_default=True, type=click.IntRange(min=1),
              help="Calls per endpoint")
@click.option("--workers", default=4, show_default=True, type=click.IntRange(min=1),
              help="Thread pool size")
@click.option("--seed", type=int, default=None, help="Random seed for simulated failures")
@click.option("--config", "config_path", type=click.Path(path_type=Path),
              help="TOML settings overriding the demo endpoint configs")
@click.option("--json", "as_json", is_flag=True, help="Output summary as JSON")
def circuits_demo(
    calls: int,
    workers: int,
    seed: int | None,
    config_path: Path | None,
    as_json: bool,
) -> None:
    """Simulate concurrent calls to two flaky endpoints."""
    endpoints = DEMO_ENDPOINTS
    if config_path is not None:
        try:
            settings = load_breaker_settings(config_path)
        except (FileNotFoundError, ValueError) as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
        endpoints = _apply_settings(endpoints, settings)

    registry = run_demo(endpoints, calls=calls, workers=workers, rng=random.Random(seed))
    _print_summary(registry.get_circuit_stats(), as_json)


def run_demo(
    endpoints: tuple[DemoEndpoint, ...],
    *,
    calls: int,
    workers: int,
    rng: random.Random,
) -> CircuitBreakerRegistry:
    """Run ``calls`` protected calls per endpoint on a thread pool.

    Returns:
        The registry holding one breaker per endpoint.
    """
    registry = CircuitBreakerRegistry()
    breakers = {
        endpoint.key: registry.get_or_create(endpoint.key, _demo_factory(endpoint))
        for endpoint in endpoints
    }

    def call_endpoint(endpoint: DemoEndpoint) -> None:
        breaker = breakers[endpoint.key]
        try:
            result = breaker.execute(lambda: _simulate_remote_call(endpoint, rng))
        except Exception as exc:
            click.echo(f"{endpoint.key} call exception: {exc}")
            return
        click.echo(f"{endpoint.key} call result: {result} | Breaker state: {breaker.state.value}")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(call_endpoint, endpoint)
            for _ in range(calls)
            for endpoint in endpoints
        ]
        for future in futures:
            future.result()

    return registry


def _demo_factory(endpoint: DemoEndpoint) -> Callable[[], CircuitBreaker[str]]:
    def factory() -> CircuitBreaker[str]:
        return (
            CircuitBreaker.builder()
            .name(endpoint.key)
            .config(endpoint.config)
            .fallback(lambda exc: endpoint.fallback_value)
            .listener(LoggingCircuitListener())
            .build()
        )

    return factory


def _simulate_remote_call(endpoint: DemoEndpoint, rng: random.Random) -> str:
    if rng.random() < endpoint.failure_chance:
        msg = f"Simulated failure from {endpoint.key}"
        raise RuntimeError(msg)
    return f"Success from {endpoint.key}"


def _apply_settings(
    endpoints: tuple[DemoEndpoint, ...], settings: BreakerSettings
) -> tuple[DemoEndpoint, ...]:
    """Replace demo configs with the ones named in a settings file."""
    return tuple(
        DemoEndpoint(
            key=endpoint.key,
            config=settings.breakers.get(endpoint.key, endpoint.config),
            fallback_value=endpoint.fallback_value,
            failure_chance=endpoint.failure_chance,
        )
        for endpoint in endpoints
    )


# ---------------------------------------------------------------------------
# probe
# ---------------------------------------------------------------------------


@circuits.command(name="probe")
@click.argument("url")
@click.option("--count", default=5, show_default=True, type=click.IntRange(min=1),
              help="Number of requests")
@click.option("--threshold", default=3, show_default=True, type=click.IntRange(min=1),
              help="Failures before the circuit opens")
@click.option("--timeout", "recovery_timeout", default=5.0, show_default=True,
              type=click.FloatRange(min=0), help="Recovery timeout in seconds")
@click.option("--interval", default=0.0, show_default=True, type=click.FloatRange(min=0),
              help="Pause between requests in seconds")
@click.option("--request-timeout", default=10.0, show_default=True,
              type=click.FloatRange(min=0), help="HTTP timeout in seconds")
@click.option("--json", "as_json", is_flag=True, help="Output breaker snapshot as JSON")
def circuits_probe(
    url: str,
    count: int,
    threshold: int,
    recovery_timeout: float,
    interval: float,
    request_timeout: float,
    as_json: bool,
) -> None:
    """Send GET requests to URL through a circuit breaker."""
    config = CircuitBreakerConfig(
        failure_threshold=threshold, recovery_timeout_seconds=recovery_timeout
    )
    asyncio.run(_circuits_probe_async(url, count, config, interval, request_timeout, as_json))


async def _circuits_probe_async(
    url: str,
    count: int,
    config: CircuitBreakerConfig,
    interval: float,
    request_timeout: float,
    as_json: bool,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """Async implementation of circuits probe command."""
    registry = CircuitBreakerRegistry(
        BreakerSettings(defaults=config),
        listeners=(LoggingCircuitListener(),),
    )

    async with ProtectedClient(
        registry=registry, timeout=request_timeout, transport=transport
    ) as client:
        for attempt in range(1, count + 1):
            try:
                response = await client.get(url)
                click.echo(f"[{attempt}] HTTP {response.status_code}")
            except CircuitOpenError as exc:
                click.echo(f"[{attempt}] rejected: {exc}")
            except (ClientError, httpx.HTTPError) as exc:
                click.echo(f"[{attempt}] failed: {type(exc).__name__}: {exc}")
            if interval and attempt < count:
                await asyncio.sleep(interval)

    breaker = registry.get(endpoint_key(httpx.URL(url)))
    snapshot = breaker.snapshot() if breaker is not None else {}
    if as_json:
        click.echo(json.dumps(snapshot, indent=2))
    elif snapshot:
        click.echo(
            f"\n{snapshot['name']}: {snapshot['state']} "
            f"(failures={snapshot['failure_count']}/{snapshot['failure_threshold']}, "
            f"rejections={snapshot['total_rejections']})"
        )
    return snapshot


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@circuits.command(name="config")
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def circuits_config(path: Path, as_json: bool) -> None:
    """Show the breaker configs resolved from a settings file."""
    try:
        settings = load_breaker_settings(path)
    except (FileNotFoundError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(settings.to_dict(), indent=2))
        return

    click.echo(f"defaults: {_format_config(settings.defaults)}")
    if not settings.breakers:
        click.echo("No per-endpoint breakers configured.")
        return
    for key in sorted(settings.breakers):
        click.echo(f"  {key}: {_format_config(settings.breakers[key])}")


def _format_config(config: CircuitBreakerConfig) -> str:
    return (
        f"failure_threshold={config.failure_threshold}, "
        f"recovery_timeout={config.recovery_timeout_seconds}s"
    )


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _determine_health_status(total: int, opened: int, half_open: int) -> str:
    """Determine overall health status."""
    if total == 0:
        return "UNKNOWN"
    elif opened == 0 and half_open == 0:
        return "HEALTHY"
    elif opened > 0 and opened >= total * 0.5:
        return "UNHEALTHY"
    else:
        return "DEGRADED"


def _print_summary(stats: dict[str, Any], as_json: bool) -> None:
    """Print registry stats with an overall health status."""
    snapshots = stats["circuits"]
    opened = sum(1 for s in snapshots.values() if s["state"] == CircuitState.OPEN.value)
    half_open = sum(1 for s in snapshots.values() if s["state"] == CircuitState.HALF_OPEN.value)
    health_status = _determine_health_status(len(snapshots), opened, half_open)

    if as_json:
        click.echo(json.dumps({"status": health_status, **stats}, indent=2))
        return

    status_colors = {
        "HEALTHY": "green",
        "DEGRADED": "yellow",
        "UNHEALTHY": "red",
        "UNKNOWN": "white",
    }
    click.echo("\n" + "=" * 60)
    click.echo("Circuit Breaker Summary")
    click.echo("=" * 60)
    click.secho(f"Status: {health_status}", fg=status_colors[health_status], bold=True)
    for key, snap in sorted(snapshots.items()):
        state_icon = {
            "closed": "[OK]",
            "open": "[X]",
            "half_open": "[~]",
        }.get(snap["state"], "?")
        click.echo(
            f"  {state_icon} {key}: {snap['state']} "
            f"(successes={snap['total_successes']}, "
            f"failures={snap['total_failures']}, "
            f"rejections={snap['total_rejections']})"
        )
