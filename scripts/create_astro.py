#!/usr/bin/python3

import click

from astroport_deploy.deployer import deploy_plan
from astroport_deploy.options import deployment_options


@click.command(name="create-astro")
@deployment_options
def cli(**options):
    """
    Uploads and instantiates the ASTRO cw20 token, then prints its token info,
    minter and the initial balance of the deployer.

    The token address (and code id) are recorded as `tokenAddress` and
    `tokenCodeID` in the network's artifact file.
    """
    deploy_plan("astro", **options)


if __name__ == "__main__":
    cli()
