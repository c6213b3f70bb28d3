#!/usr/bin/python3

import click

from astroport_deploy.deployer import deploy_plan
from astroport_deploy.options import deployment_options


@click.command(name="deploy-core")
@deployment_options
def cli(**options):
    """
    Uploads the pair, stable pair, whitelist and xASTRO code, then deploys the
    staking and factory contracts. Requires `tokenAddress` and `tokenCodeID`
    (see create_astro.py).
    """
    deploy_plan("core", **options)


if __name__ == "__main__":
    cli()
