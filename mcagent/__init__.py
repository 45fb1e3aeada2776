"""Container monitoring agent core: configuration, commands, check plugins, hosts and ECS metadata types."""

__version__ = "0.8.0"