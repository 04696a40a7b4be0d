"""
Cross-server chat relay.

Tails game server logs, turns chat lines into messages and replays them on
the other servers over RCON.
"""

__version__ = "0.1.0"
