"""McClintock: run five TE insertion detection tools on one paired-end sample."""

__version__ = "0.1.0"
