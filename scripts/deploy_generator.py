#!/usr/bin/python3

import click

from astroport_deploy.deployer import deploy_plan
from astroport_deploy.options import deployment_options


@click.command(name="deploy-generator")
@deployment_options
def cli(**options):
    """
    Deploys the vesting and generator contracts, points the factory at the
    generator, registers the generator pools and vesting schedule and proposes
    the multisig as generator owner.

    Requires `tokenAddress`, `factoryAddress` and `whitelistCodeID`; on testnet
    and mainnet `multisigAddress` must also be set in the artifact file.
    Re-running resumes from the first step that has not been recorded.
    """
    deploy_plan("generator", **options)


if __name__ == "__main__":
    cli()
