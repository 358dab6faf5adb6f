from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import httpx
import typer

from . import utils
from .base_config import base_config
from .caddy_api import CaddyAdminApi, CaddyError, NotFoundIdError
from .configmanager import ConfigManager
from .models.route import ReverseProxyRoute
from .reconciler import RouteReconciler
from .refresher import RouteRefresher
from .routes_file import load_routes_file

logger = ConfigManager.get_logger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
    pretty_exceptions_short=True,
)


def load_config_callback(value: str | None) -> str | None:
    """Eager callback to load env file before other options are processed."""
    ConfigManager.load_dotenv(value)
    return value


@contextmanager
def api_context() -> Generator[CaddyAdminApi, None, None]:
    try:
        timeout_s = ConfigManager.timeout_s()
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None
    with CaddyAdminApi(admin_url=ConfigManager.admin_url(), timeout_s=timeout_s) as api:
        try:
            yield api
        except NotFoundIdError as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(code=1) from None
        except (CaddyError, httpx.HTTPError) as e:
            typer.echo(f"Caddy request failed: {e}", err=True)
            raise typer.Exit(code=2) from None


def _server_key(value: str | None) -> str:
    return (value or "").strip() or ConfigManager.server_key()


@app.callback()
def _main(
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        envvar="CADDYCFG_ENV_FILE",
        is_eager=True,
        callback=load_config_callback,
        help="dotenv file to load (default .env)",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default from CADDYCFG_LOG_LEVEL or INFO",
    ),
    log_file: str | None = typer.Option(None, "--log-file", help="Also log to this file"),
) -> None:
    _ = env_file
    try:
        ConfigManager.configure_logging(
            log_level or ConfigManager.log_level(),
            log_file=log_file or ConfigManager.log_file(),
            file_level="DEBUG",
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


@app.command("base-config")
def base_config_cmd(
    server_key: str | None = typer.Option(None, "--server-key", help="HTTP server key (CADDYCFG_SERVER_KEY)"),
) -> None:
    """Print the base configuration with an empty routes array."""
    print(base_config(ConfigManager.admin_url(), _server_key(server_key), listen=ConfigManager.listen()), end="")


@app.command("init")
def init(
    server_key: str | None = typer.Option(None, "--server-key", help="HTTP server key (CADDYCFG_SERVER_KEY)"),
    to: str | None = typer.Option(
        None,
        "--to",
        help="Admin URL to upload through, e.g. http://localhost:2019 for a fresh `caddy run`",
    ),
) -> None:
    """Replace the running configuration with the base configuration."""
    cfg = base_config(ConfigManager.admin_url(), _server_key(server_key), listen=ConfigManager.listen())
    with api_context() as api:
        if to:
            api.upload_to(to, cfg)
        else:
            api.load(cfg)
    typer.echo(f"Loaded base configuration for server {_server_key(server_key)}")


@app.command("load")
def load(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON configuration file"),
) -> None:
    """Replace the running configuration with FILE."""
    text = file.read_text(encoding="utf-8")
    with api_context() as api:
        api.load(text)
    typer.echo(f"Loaded {file}")


@app.command("config")
def config(
    route_id: str | None = typer.Option(None, "--id", help="Only print the object with this @id"),
) -> None:
    """Print the running configuration."""
    with api_context() as api:
        print(api.config_by_id(route_id) if route_id else api.config())


@app.command("add-route")
def add_route(
    route_id: str = typer.Argument(..., help="Route @id, usually the main domain"),
    host: list[str] = typer.Option(..., "--host", help="Host to match (repeatable or comma separated)"),
    upstream: list[str] = typer.Option(..., "--upstream", help="Upstream host:port (repeatable)"),
    path: list[str] = typer.Option(["/*"], "--path", help="Path pattern to match (repeatable)"),
    protocol: str = typer.Option("http", "--protocol", help="Upstream transport protocol"),
    server_key: str | None = typer.Option(None, "--server-key", help="HTTP server key (CADDYCFG_SERVER_KEY)"),
) -> None:
    """Add or update a reverse proxy route."""
    try:
        route = ReverseProxyRoute(
            hosts=utils.parse_str_list(",".join(host), field="--host"),
            paths=utils.parse_str_list(",".join(path), field="--path"),
            upstreams=tuple(utils.parse_dial(u, field="--upstream") for u in upstream),
            protocol=protocol.strip().lower(),
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None
    with api_context() as api:
        outcome = RouteReconciler(api).reconcile(_server_key(server_key), route_id, route)
    typer.echo(f"Route {route_id}: {outcome.value}")


@app.command("delete")
def delete(route_id: str = typer.Argument(..., help="Route @id")) -> None:
    """Delete the object with this @id."""
    with api_context() as api:
        if not RouteReconciler(api).remove(route_id):
            typer.echo(f"Route {route_id} not found", err=True)
            raise typer.Exit(code=1)
    typer.echo(f"Deleted {route_id}")


@app.command("sync")
def sync(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="YAML routes file"),
    server_key: str | None = typer.Option(None, "--server-key", help="Overrides `server:` from FILE"),
    watch: bool = typer.Option(False, "--watch", help="Keep reconciling until interrupted"),
    interval: float | None = typer.Option(
        None, "--interval", help="Seconds between runs with --watch (CADDYCFG_REFRESH_INTERVAL_S)"
    ),
) -> None:
    """Reconcile every route listed in FILE."""
    try:
        routes_file = load_routes_file(file)
        interval_s = interval if interval is not None else ConfigManager.refresh_interval_s()
    except (ValueError, OSError) as e:
        raise typer.BadParameter(str(e)) from None
    if interval_s <= 0:
        raise typer.BadParameter("--interval must be > 0")
    key = _server_key(server_key or routes_file.server)

    with api_context() as api:
        refresher = RouteRefresher(RouteReconciler(api), key, routes_file.routes, interval_s)
        if watch:
            refresher.start()
            try:
                while refresher.running:
                    time.sleep(0.5)
            except KeyboardInterrupt:
                logger.info("Interrupted")
            finally:
                refresher.stop()
                refresher.join()
            return

        results = refresher.run_once()

    failed = 0
    for route_id, result in results.items():
        if isinstance(result, Exception):
            failed += 1
            typer.echo(f"Route {route_id}: failed ({result})", err=True)
        else:
            typer.echo(f"Route {route_id}: {result.value}")
    if failed:
        raise typer.Exit(code=2)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
