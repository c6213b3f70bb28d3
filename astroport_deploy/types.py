import click

from astroport_deploy.config import ConfigurationError, parse_gas_price, validate_network_identity


class NetworkIdentity(click.ParamType):
    name = "network_identity"

    def convert(self, value, param, ctx):
        try:
            return validate_network_identity(value)
        except ConfigurationError as e:
            self.fail(str(e), param, ctx)


class GasPrice(click.ParamType):
    name = "gas_price"

    def convert(self, value, param, ctx):
        try:
            parse_gas_price(value)
        except ConfigurationError:
            self.fail(f"{value} is not a valid gas price (e.g. 0.15uluna)", param, ctx)
        else:
            return value
