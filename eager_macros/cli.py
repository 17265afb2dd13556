from __future__ import annotations

import json

import typer

from eager_macros.core.errors import ExpansionError, RegistryError, TokenLoadError
from eager_macros.core.expand.engine import Engine
from eager_macros.core.expand.engine_config import EngineConfig, EngineConfigError, load_and_merge
from eager_macros.core.expand.host import LazyHost
from eager_macros.core.io.lex_tokens import parse_tokens, read_tokens, render_tokens
from eager_macros.core.io.load_registry import load_registry
from eager_macros.core.log import configure_logging
from eager_macros.core.rules.registry import Registry

app = typer.Typer(add_completion=False, no_args_is_help=True)

_LOAD_CODES = {"E_FILE_NOT_FOUND", "E_FILE_READ", "E_UNSUPPORTED_FORMAT", "E_YAML_PARSE", "E_JSON_PARSE"}


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log dispatches and mode switches to stderr"),
) -> None:
    """Eager expansion CLI."""
    configure_logging(verbose)


@app.command("expand")
def expand(
    path: str = typer.Argument(..., help="Path to a source file of tokens"),
    registry_file: str = typer.Option(..., "--registry", help="Registry file (.yaml/.yml/.json)"),
    config_file: str | None = typer.Option(None, "--config", help="Optional YAML file overriding engine settings"),
    lazy: bool = typer.Option(False, "--lazy", help="Use the opt-out invocation instead of the entry invocation"),
    host: bool = typer.Option(False, "--host", help="Finish with call-by-name evaluation of what is left"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Eagerly expand every invocation in a source file."""
    if format not in ("text", "json"):
        _print_errors(
            [
                ExpansionError(
                    code="E_EXPAND_UNKNOWN_FORMAT",
                    message=f"unknown format: {format} (choose one of: text, json)",
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)

    def _emit_json(ok: bool, *, exit_code: int, tokens: str | None, errors: list[ExpansionError]) -> None:
        payload = {
            "tool": "eager",
            "command": "expand",
            "ok": ok,
            "tokens": tokens,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        config = _load_config(config_file)
        registry = load_registry(registry_file, default_sentinel=config.sentinel)
        source = read_tokens(path)
    except ExpansionError as e:
        exit_code = _exit_code(e)
        if format == "json":
            _emit_json(False, exit_code=exit_code, tokens=None, errors=[e])
        _print_errors([e])
        raise typer.Exit(code=exit_code)

    try:
        engine = Engine(registry, config)
        result = engine.lazy(source) if lazy else engine.eager(source)
        if host:
            result = LazyHost(registry, config).evaluate(result)
    except ExpansionError as e:
        if format == "json":
            _emit_json(False, exit_code=2, tokens=None, errors=[e])
        _print_errors([e])
        raise typer.Exit(code=2)

    rendered = render_tokens(result)
    if format == "json":
        _emit_json(True, exit_code=0, tokens=rendered, errors=[])
    typer.echo(rendered)


@app.command("call")
def call(
    name: str = typer.Argument(..., help="Expander name"),
    args: str = typer.Argument("", help="Argument tokens, e.g. '1, 2'"),
    registry_file: str = typer.Option(..., "--registry", help="Registry file (.yaml/.yml/.json)"),
    config_file: str | None = typer.Option(None, "--config", help="Optional YAML file overriding engine settings"),
) -> None:
    """Invoke one expander directly (plain form), as the host would."""
    try:
        config = _load_config(config_file)
        registry = load_registry(registry_file, default_sentinel=config.sentinel)
        arg_tokens = parse_tokens(args)
    except ExpansionError as e:
        _print_errors([e])
        raise typer.Exit(code=_exit_code(e))

    if name not in registry:
        _print_errors(
            [
                ExpansionError(
                    code="E_CALL_UNKNOWN_EXPANDER",
                    message=f"unknown expander: {name} (choose one of: {', '.join(sorted(registry))})",
                    file=registry_file,
                    path="name",
                )
            ]
        )
        raise typer.Exit(code=2)

    try:
        result = LazyHost(registry, config).call(name, arg_tokens)
    except ExpansionError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    typer.echo(render_tokens(result))


@app.command("registry")
def registry_cmd(
    registry_file: str = typer.Option(..., "--registry", help="Registry file (.yaml/.yml/.json)"),
    config_file: str | None = typer.Option(None, "--config", help="Optional YAML file overriding engine settings"),
) -> None:
    """List the expanders a registry file declares."""
    try:
        config = _load_config(config_file)
        registry = load_registry(registry_file, default_sentinel=config.sentinel)
    except ExpansionError as e:
        _print_errors([e])
        raise typer.Exit(code=_exit_code(e))

    typer.echo("Expanders:")
    for name in sorted(registry):
        typer.echo(_describe(registry, name))


def _describe(registry: Registry, name: str) -> str:
    expander = registry[name]
    plain = sum(1 for r in expander.rules if r.form == "plain")
    kind = "eager" if expander.dispatch_enabled else "plain-only"
    line = f"- {name} ({kind}, {plain} rules)"
    if expander.doc:
        line += f": {expander.doc.strip().splitlines()[0]}"
    return line


def _load_config(config_file: str | None) -> EngineConfig:
    try:
        return load_and_merge(config_file)
    except FileNotFoundError:
        raise ExpansionError(
            code="E_CONFIG_FILE_NOT_FOUND",
            message=f"config file not found: {config_file}",
            path="config_file",
        )
    except EngineConfigError as e:
        raise ExpansionError(code="E_CONFIG_FILE_INVALID", message=str(e), file=config_file, path="config_file")


def _exit_code(e: ExpansionError) -> int:
    if isinstance(e, TokenLoadError):
        return 1
    if isinstance(e, RegistryError) and e.code in _LOAD_CODES:
        return 1
    if e.code == "E_CONFIG_FILE_NOT_FOUND":
        return 1
    return 2


def _to_item(e: ExpansionError) -> dict:
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "kind": type(e).__name__,
    }


def _print_errors(errors: list[ExpansionError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="eager")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
