"""equityplan: vesting, tax and AMT planning for equity compensation."""

__version__ = "0.1.0"
