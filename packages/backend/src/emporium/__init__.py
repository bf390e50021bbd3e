"""Emporium — storefront backend with a realtime chat channel.

The chat core lives in three places: the message stores (store/),
the per-process broadcaster (realtime/), and the process supervisor
(supervisor/) that runs one or many workers on a shared port.
"""

__version__ = "0.1.0"
