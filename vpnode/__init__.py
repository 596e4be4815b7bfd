"""Virtual Private Node — provision a Bitcoin Core + LND node over Tor."""

__version__ = "0.1.0"
