from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import click
import typer
import yaml

from advads_cli import __version__
from advads_hub.abilities.registry import AbilityContext, get_registry
from advads_hub.auth import admin_caller
from advads_hub.config import ConfigError, load_config
from advads_hub.logging_utils import configure_logging
from advads_hub.store import build_store


def _die(msg: str, code: int = 2) -> NoReturn:
    typer.echo(f"ERROR: {msg}", err=True)
    raise typer.Exit(code=code)


def _load_payload(input_json: str | None, input_file: Path | None) -> dict[str, Any]:
    if input_json and input_file:
        _die("use either --input or --input-file, not both")
    if input_file is not None:
        try:
            text = input_file.read_text(encoding="utf-8")
        except OSError as e:
            _die(f"cannot read {input_file}: {e}")
        try:
            if input_file.suffix.lower() in (".yaml", ".yml"):
                obj = yaml.safe_load(text)
            else:
                obj = json.loads(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            _die(f"cannot parse {input_file}: {e}")
    elif input_json:
        try:
            obj = json.loads(input_json)
        except json.JSONDecodeError as e:
            _die(f"--input is not valid JSON: {e}")
    else:
        obj = {}
    if obj is None:
        obj = {}
    if not isinstance(obj, dict):
        _die("ability input must be a JSON/YAML object")
    return obj


def build_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        help="advads CLI - invoke Advanced Ads abilities locally",
        no_args_is_help=True,
    )

    @app.callback(invoke_without_command=True)
    def _root(
        verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log verbosity"),
        version: bool = typer.Option(False, "--version", help="Print version and exit"),
    ) -> None:
        if version:
            typer.echo(__version__)
            raise typer.Exit(code=0)
        configure_logging(verbose)

    @app.command("list")
    def list_cmd() -> None:
        """List registered ability names."""
        for name in get_registry().list_abilities():
            typer.echo(name)

    @app.command("describe")
    def describe_cmd(name: str = typer.Argument(..., help="Ability name, e.g. advads/list-ads")) -> None:
        """Print an ability's label, description and schemas as JSON."""
        spec = get_registry().get(name)
        if spec is None:
            _die(f"unknown ability: {name}", code=1)
        typer.echo(json.dumps(spec.describe(), indent=2))

    @app.command("run")
    def run_cmd(
        name: str = typer.Argument(..., help="Ability name, e.g. advads/create-ad"),
        input_json: str | None = typer.Option(None, "--input", "-i", help="Ability input as a JSON object"),
        input_file: Path | None = typer.Option(None, "--input-file", "-f", help="JSON or YAML file with the input"),
    ) -> None:
        """Invoke an ability as a local administrator and print the result."""
        payload = _load_payload(input_json, input_file)
        cfg = load_config()
        ctx = AbilityContext(
            store=build_store(cfg),
            caller=admin_caller("cli"),
            platform_active=cfg.platform_active,
            platform_version=cfg.platform_version,
        )
        result = get_registry().execute(name, payload, ctx)
        typer.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))
        if not result.success:
            raise typer.Exit(code=1)

    @app.command("init-db")
    def init_db_cmd(
        sql_file: Path | None = typer.Option(None, "--sql-file", help="Schema file (default: the bundled 001_init.sql)"),
    ) -> None:
        """Create the content store tables through the RDS Data API (ADVADS_STORE=rds)."""
        from advads_hub.rds_data import RdsData, RdsDataEnv
        from advads_hub.schema import apply_schema

        cfg = load_config()
        if cfg.store_backend != "rds":
            _die("init-db needs ADVADS_STORE=rds")
        db = RdsData(RdsDataEnv(resource_arn=cfg.db_resource_arn, secret_arn=cfg.db_secret_arn, database=cfg.db_name))
        count = apply_schema(db, sql_file)
        typer.echo(f"DB init complete ({count} statements)")

    @app.command("serve")
    def serve_cmd(
        host: str = typer.Option("127.0.0.1", "--host"),
        port: int = typer.Option(8000, "--port"),
        reload: bool = typer.Option(False, "--reload"),
    ) -> None:
        """Serve the HTTP API with uvicorn."""
        import uvicorn

        uvicorn.run("advads_hub.api_app:api_app", host=host, port=port, reload=reload)

    return app


def run(argv: list[str]) -> int:
    # Execute without letting Click `sys.exit()`.
    command = typer.main.get_command(build_app())
    try:
        rv = command.main(args=argv, prog_name="advads", standalone_mode=False)
        # With standalone_mode=False, Exit becomes the integer return value.
        if isinstance(rv, int):
            return int(rv)
        return 0
    except ConfigError as e:
        typer.echo(f"ERROR: {e}", err=True)
        return 2
    except click.exceptions.ClickException as e:
        e.show()
        return int(e.exit_code)
    except click.exceptions.Abort:
        return 1
