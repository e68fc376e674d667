import click
from eth_utils import to_checksum_address

from marketplace_deployment.constants import MAX_BASIS_POINTS


class BasisPoints(click.ParamType):
    name = "basis_points"

    def __init__(self, max_value: int = MAX_BASIS_POINTS):
        self.max_value = max_value

    def convert(self, value, param, ctx):
        if isinstance(value, int) and not isinstance(value, bool):
            ivalue = value
        else:
            try:
                ivalue = int(value)
            except (TypeError, ValueError):
                self.fail(f"{value} is not a valid integer", param, ctx)
        if not 0 <= ivalue <= self.max_value:
            self.fail(
                f"{value} is not between 0 and {self.max_value} basis points", param, ctx
            )
        return ivalue


class ChecksumAddress(click.ParamType):
    name = "checksum_address"

    def convert(self, value, param, ctx):
        try:
            value = to_checksum_address(value=value)
        except ValueError:
            self.fail(f"{value} is not a valid ethereum address", param, ctx)
        else:
            return value
