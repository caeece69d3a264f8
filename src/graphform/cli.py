"""Graphform CLI - plan and apply declarative resource stacks."""

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import yaml

from graphform import __version__
from graphform.core.config.errors import ConfigError
from graphform.core.config.loader import DEFAULT_CONFIG, load_config, load_document, load_yaml, resolve_settings
from graphform.core.config.merge import deep_merge
from graphform.core.declaration.loader import describe
from graphform.core.engine.engine import Engine
from graphform.core.engine.plan import load_plan, save_plan
from graphform.core.engine.render import render_apply_result, render_plan, render_value
from graphform.core.errors import payload_from_exception
from graphform.core.engine.planner import CycleDetectedError, UnknownDependencyError
from graphform.core.exceptions import GraphformException
from graphform.core.state.store import StateStore
from graphform.providers import default_registry
from graphform.ui import console, print_error, print_plan, print_success, print_warning, state_table

# Erros esperados: viram payload + exit code 1, sem traceback
HANDLED_ERRORS = (GraphformException, ConfigError, UnknownDependencyError, CycleDetectedError)


@dataclass
class CliOptions:
    stack: str
    config: Optional[str]
    local_config: Optional[str]
    state: Optional[str]

    def settings(self):
        if self.config:
            config = load_config(defaults_path=self.config, local_path=self.local_config)
        elif self.local_config and Path(self.local_config).exists():
            config = deep_merge(DEFAULT_CONFIG, load_document(Path(self.local_config)))
        else:
            config = {}
        if self.state:
            config = deep_merge(config, {"state": {"path": self.state}})
        return resolve_settings(config)

    def engine(self) -> Engine:
        return Engine.from_path(self.stack, registry=default_registry(), settings=self.settings())

    def store(self) -> StateStore:
        settings = self.settings()
        return StateStore(settings.state_path, backup=settings.state_backup)


def parse_var(raw: str) -> Tuple[str, Any]:
    """`name=value`; o valor é interpretado como YAML (números, bools, listas)."""
    if "=" not in raw:
        raise click.BadParameter(f"expected NAME=VALUE, got {raw!r}", param_hint="--var")
    name, value = raw.split("=", 1)
    name = name.strip()
    if not name:
        raise click.BadParameter(f"empty variable name in {raw!r}", param_hint="--var")
    try:
        parsed = load_yaml(value) if value.strip() else ""
    except yaml.YAMLError:
        parsed = value
    return name, parsed


def collect_variables(var_files: Tuple[str, ...], var_pairs: Tuple[str, ...]) -> Dict[str, Any]:
    variables: Dict[str, Any] = {}
    for vf in var_files:
        variables.update(load_document(Path(vf)))
    for raw in var_pairs:
        name, value = parse_var(raw)
        variables[name] = value
    return variables


def fail(exc: BaseException) -> None:
    print_error(payload_from_exception(exc))
    sys.exit(1)


def variable_options(fn):
    fn = click.option("--var", "var_pairs", multiple=True, metavar="NAME=VALUE", help="Set a root variable")(fn)
    fn = click.option(
        "--var-file", "var_files", multiple=True, type=click.Path(exists=True, dir_okay=False),
        help="YAML/JSON file with variable values",
    )(fn)
    return fn


def _sensitive_outputs(engine: Engine) -> Dict[str, bool]:
    return {name: out.sensitive for name, out in engine.stack.outputs.items()}


def _report_apply(engine: Engine, result) -> None:
    print_plan(render_apply_result(result, sensitive=_sensitive_outputs(engine)))
    if not result.ok:
        sys.exit(1)


@click.group()
@click.help_option("-h", "--help")
@click.version_option(__version__, prog_name="graphform")
@click.option("-s", "--stack", default="stack.yaml", show_default=True, help="Root stack document (YAML/JSON)")
@click.option("--config", "config_path", default=None, help="Engine configuration defaults file")
@click.option("--local-config", default=None, help="Local configuration overrides (optional)")
@click.option("--state", "state_path", default=None, help="Override state.path")
@click.pass_context
def cli(ctx, stack, config_path, local_config, state_path):
    """Declarative resource graph engine: validate, plan and apply stacks."""
    ctx.obj = CliOptions(stack=stack, config=config_path, local_config=local_config, state=state_path)


@cli.command()
@click.pass_obj
def validate(opts: CliOptions):
    """Check declarations, references and the dependency graph."""
    try:
        engine = opts.engine()
    except HANDLED_ERRORS as e:
        fail(e)
    addresses = describe(engine.stack)
    print_success(f"Stack is valid: {len(addresses)} resource(s), {len(engine.graph)} graph node(s).")


@cli.command()
@variable_options
@click.option("--out", "out_path", default=None, help="Save the plan to this file for a later apply")
@click.option("--destroy", is_flag=True, help="Plan the destruction of every managed resource")
@click.option("--refresh/--no-refresh", default=None, help="Read current objects before diffing")
@click.option("--detailed-exitcode", is_flag=True, help="Exit 2 when the plan has changes")
@click.pass_obj
def plan(opts: CliOptions, var_files, var_pairs, out_path, destroy, refresh, detailed_exitcode):
    """Show the changes required to reach the declared state."""
    try:
        engine = opts.engine()
        result = engine.plan(variables=collect_variables(var_files, var_pairs), destroy=destroy, refresh=refresh)
    except HANDLED_ERRORS as e:
        fail(e)

    print_plan(render_plan(result))
    if out_path:
        save_plan(result, Path(out_path))
        console.print(f"\nSaved the plan to: [path]{out_path}[/path]", highlight=False)
    if detailed_exitcode and result.has_changes():
        sys.exit(2)


@cli.command()
@click.argument("plan_file", required=False, type=click.Path(exists=True, dir_okay=False))
@variable_options
@click.option("--auto-approve", is_flag=True, help="Skip interactive approval")
@click.pass_obj
def apply(opts: CliOptions, plan_file, var_files, var_pairs, auto_approve):
    """Apply a saved plan, or plan and apply after confirmation."""
    try:
        engine = opts.engine()
        if plan_file:
            if var_files or var_pairs:
                print_warning("variables are taken from the saved plan; --var/--var-file ignored")
            the_plan = load_plan(Path(plan_file))
        else:
            the_plan = engine.plan(variables=collect_variables(var_files, var_pairs))
            print_plan(render_plan(the_plan))
            if the_plan.has_changes() and not auto_approve and not click.confirm("\nDo you want to perform these actions?"):
                print_warning("Apply cancelled.")
                sys.exit(1)
        result = engine.apply(the_plan)
    except HANDLED_ERRORS as e:
        fail(e)
    _report_apply(engine, result)


@cli.command()
@variable_options
@click.option("--auto-approve", is_flag=True, help="Skip interactive approval")
@click.pass_obj
def destroy(opts: CliOptions, var_files, var_pairs, auto_approve):
    """Destroy every resource tracked in the state."""
    try:
        engine = opts.engine()
        the_plan = engine.plan(variables=collect_variables(var_files, var_pairs), destroy=True)
        print_plan(render_plan(the_plan))
        if not the_plan.has_changes():
            return
        if not auto_approve and not click.confirm("\nReally destroy all resources?"):
            print_warning("Destroy cancelled.")
            sys.exit(1)
        result = engine.apply(the_plan)
    except HANDLED_ERRORS as e:
        fail(e)
    _report_apply(engine, result)


@cli.command()
@click.argument("name", required=False)
@click.option("--json", "as_json", is_flag=True, help="Print outputs as JSON (sensitive values included)")
@click.pass_obj
def output(opts: CliOptions, name, as_json):
    """Show root outputs recorded by the last apply."""
    try:
        state = opts.store().load()
    except (ConfigError, ValueError) as e:
        fail(e)

    if name is not None:
        if name not in state.outputs:
            print_warning(f"output '{name}' not found in state")
            sys.exit(1)
        value = state.outputs[name].get("value")
        click.echo(json.dumps(value, ensure_ascii=False) if as_json else render_value(value))
        return

    if as_json:
        click.echo(json.dumps(state.outputs, ensure_ascii=False, indent=2, sort_keys=True))
        return
    for key in sorted(state.outputs):
        entry = state.outputs[key]
        shown = "(sensitive)" if entry.get("sensitive") else render_value(entry.get("value"))
        click.echo(f"{key} = {shown}")


@cli.command()
@click.option(
    "--format", "fmt", type=click.Choice(["dot", "order", "levels"]), default="dot", show_default=True,
    help="dot: Graphviz; order: creation order; levels: parallel execution levels",
)
@click.pass_obj
def graph(opts: CliOptions, fmt):
    """Print the dependency graph."""
    try:
        engine = opts.engine()
    except HANDLED_ERRORS as e:
        fail(e)

    if fmt == "dot":
        click.echo(engine.graph.to_dot())
    elif fmt == "order":
        for node in engine.graph.ordered():
            click.echo(node.address)
    else:
        for i, level in enumerate(engine.graph.levels()):
            click.echo(f"{i}: {' '.join(n.address for n in level)}")


@cli.group()
def state():
    """Inspect the state file."""


@state.command("list")
@click.pass_obj
def state_list(opts: CliOptions):
    """List tracked resources."""
    try:
        current = opts.store().load()
    except (ConfigError, ValueError) as e:
        fail(e)
    rows = {a: {"type": rs.type, "id": rs.id, "dependencies": rs.dependencies} for a, rs in current.resources.items()}
    if not rows:
        console.print("[dim]No resources in state.[/dim]")
        return
    console.print(state_table(rows))


@state.command("show")
@click.argument("address")
@click.pass_obj
def state_show(opts: CliOptions, address):
    """Show one tracked resource as JSON."""
    try:
        current = opts.store().load()
    except (ConfigError, ValueError) as e:
        fail(e)
    rs = current.resources.get(address)
    if rs is None:
        print_warning(f"{address} not found in state")
        sys.exit(1)
    click.echo(json.dumps(rs.to_dict(), ensure_ascii=False, indent=2, sort_keys=True))


@cli.command("force-unlock")
@click.option("--force", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def force_unlock(opts: CliOptions, force):
    """Remove a stale state lock left by an interrupted run."""
    try:
        store = opts.store()
    except ConfigError as e:
        fail(e)
    info = store.lock_info()
    if info is None:
        console.print("[dim]State is not locked.[/dim]")
        return
    if not force and not click.confirm(f"Remove lock held by run {info.get('run_id')}?"):
        sys.exit(1)
    store.force_unlock()
    print_success("State unlocked.")


def main():
    cli(prog_name="graphform")


if __name__ == "__main__":
    main()
