#!/usr/bin/python3

from pathlib import Path
from typing import Optional

import click

from astroport_deploy.artifacts import ArtifactStore
from astroport_deploy.constants import ARTIFACTS_DIR, NETWORK_PRESETS
from astroport_deploy.options import artifacts_dir_option, wasm_dir_option
from astroport_deploy.plan import DeploymentPlan, plan_filepath


def _network_name(chain_id: str) -> Optional[str]:
    for name, (preset_chain_id, _) in NETWORK_PRESETS.items():
        if preset_chain_id == chain_id:
            return name
    return None


@click.command(name="list-artifacts")
@artifacts_dir_option
@wasm_dir_option
@click.option("--plan", "plan_name", help="Also show the pending steps of this plan.")
def cli(artifacts_dir, wasm_dir, plan_name):
    """List the recorded deployment artifacts of every network."""
    store = ArtifactStore(Path(artifacts_dir or ARTIFACTS_DIR))
    networks = store.networks()
    if not networks:
        click.echo(f"No artifacts recorded in {store.directory}.")
        return

    for chain_id in networks:
        record = store.load(chain_id)
        click.secho(f"\n{chain_id}", fg="green")
        for index, (key, value) in enumerate(record.items(), start=1):
            click.secho(f"    {index}. {key} {value}", fg="cyan")

        network = _network_name(chain_id)
        if not plan_name or not network:
            continue
        filepath = plan_filepath(network=network, plan_name=plan_name)
        plan = DeploymentPlan.from_yaml(filepath=filepath, wasm_dir=Path(wasm_dir or "."))
        pending = plan.pending(record)
        click.secho(f"    Pending {plan.name} steps: {', '.join(pending) or 'none'}", fg="yellow")


if __name__ == "__main__":
    cli()
